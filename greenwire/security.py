"""
Helpers for keeping API keys out of log lines.
"""
from __future__ import annotations

import re


def redact_secrets(text: str) -> str:
    """Redact common secret patterns from logs and error strings."""
    if not isinstance(text, str):
        return text

    # Query params like apikey=, api_key=, key=, token=
    redacted = re.sub(r"(?i)(api[_-]?key|key|token|secret)=([^&\s]+)", r"\1=***REDACTED***", text)

    # Authorization: Bearer <token>, with or without the header prefix
    redacted = re.sub(r"(?i)Bearer\s+[A-Za-z0-9._\-]+", "Bearer ***REDACTED***", redacted)

    return redacted


def is_configured_key(value: str | None) -> bool:
    """Return True if a key is set and is not a template placeholder."""
    if not value:
        return False
    s = value.strip()
    if not s:
        return False
    return ("YOUR_" not in s) and ("your_" not in s)
