"""Redaction module to mask secrets in logs, errors and reports."""
import re
from typing import Iterable

# (pattern, replacement) pairs applied in order
_PATTERNS = [
    (r'([?&]apikey=)[^&\s\'"]+', r'\1[REDACTED]'),
    (r'([?&](?:api_key|key|token)=)[^&\s\'"]+', r'\1[REDACTED]'),
    (r'(Authorization["\']?\s*[:=]\s*["\']?(?:Bearer|Basic)\s+)[^\s"\']+', r'\1[REDACTED]'),
    (r'(https://hooks\.slack\.com/services/)[^\s"\']+', r'\1[REDACTED]'),
]


def redact_string(text: str) -> str:
    """Redact secrets from a string."""
    if not text:
        return text

    result = text
    for pattern, replacement in _PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    return result


def redact_secrets(text: str, secrets: Iterable[str | None]) -> str:
    """Redact known secret values first, then the generic patterns."""
    result = text or ""
    for secret in secrets:
        if secret and len(secret) >= 4:
            result = result.replace(secret, "[REDACTED]")
    return redact_string(result)
