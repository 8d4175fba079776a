"""Normalization helpers.

Centralizes defensive parsing of feed values.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix allowed) or pass a datetime through.

    Returns ``None`` for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        return None
