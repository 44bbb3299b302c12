"""Validation helpers used across the project."""

from __future__ import annotations

import datetime
import json
import re
from typing import Final, Optional

# RFC 9110 token characters; custom methods such as PURGE are allowed.
HTTP_METHOD_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Z]+$")


def normalize_http_method(method: Optional[str]) -> Optional[str]:
    """Strip and upper-case an HTTP method, rejecting anything that is not a token."""
    if method is None:
        return None
    value = method.strip().upper()
    if not value:
        raise ValueError("HTTP method must not be empty.")
    if not HTTP_METHOD_PATTERN.match(value):
        raise ValueError(f"Invalid HTTP method: {method!r}")
    return value


def validate_json_text(text: Optional[str]) -> Optional[str]:
    """Ensure *text* is well-formed serialized JSON and return it unchanged."""
    if text is None:
        return None
    try:
        json.loads(text)
    except ValueError as e:
        raise ValueError(f"Value is not valid JSON: {e}") from e
    return text


def ensure_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)
