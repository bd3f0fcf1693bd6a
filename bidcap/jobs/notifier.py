"""Best-effort posting of run reports to a chat webhook."""
import logging
from typing import Optional, Sequence

import httpx

from bidcap.config import config
from bidcap.parse.redact import redact_string

logger = logging.getLogger(__name__)

REPORT_HEADER = "🍷 Fee validator report"


def format_report(lines: Sequence[str], project: Optional[str] = None) -> str:
    """Header, project line, then one line per house."""
    parts = [REPORT_HEADER]
    if project:
        parts.append(f"Project: {project}")
    parts.extend(lines)
    return "\n".join(parts)


class WebhookNotifier:
    """Posts ``{"text": ...}`` to a Slack-compatible webhook. Never raises."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        project: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else config.SLACK_WEBHOOK_URL
        self.project = project if project is not None else config.SUPABASE_URL
        self.timeout = timeout
        self.transport = transport

    async def notify(self, lines: Sequence[str]) -> bool:
        """Send the report. Returns False when skipped or failed."""
        if not self.webhook_url:
            logger.debug("No webhook configured, skipping notification")
            return False

        payload = {"text": format_report(lines, self.project)}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except Exception as e:
            # Reporting must never change the run outcome
            logger.warning(f"Webhook notification failed: {redact_string(str(e))}")
            return False

        logger.info("Webhook notification sent")
        return True
