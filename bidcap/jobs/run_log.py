"""Run history exporter: one JSON line per verifier run."""
import json
import logging
import time
from pathlib import Path
from typing import Optional

import aiofiles

from bidcap.config import config

logger = logging.getLogger(__name__)


class RunLogExporter:
    """Appends run summaries to a JSONL file for later inspection."""

    def __init__(self, run_id: str, path: Optional[Path] = None):
        self.run_id = run_id
        self.path = Path(path) if path is not None else config.RUN_LOG_FILE

    async def export(self, summary: dict) -> None:
        """Append one summary line. Errors are logged, not raised."""
        line = json.dumps({"ts": time.time(), "run_id": self.run_id, **summary}) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a") as f:
                await f.write(line)
        except OSError as e:
            logger.warning(f"Could not write run log {self.path}: {e}")
