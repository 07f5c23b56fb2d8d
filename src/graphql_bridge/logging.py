"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional


_SENSITIVE_KEYS = re.compile(r"(authorization|cookie|token|secret|api[_-]?key|password)", re.IGNORECASE)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def redact_headers(headers: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in headers.items():
        if value is not None and _SENSITIVE_KEYS.search(key):
            redacted[key] = "***REDACTED***"
        else:
            redacted[key] = value
    return redacted


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if _SENSITIVE_KEYS.search(key):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, Mapping):
            redacted[key] = redact_payload(value)
        else:
            redacted[key] = value
    return redacted
