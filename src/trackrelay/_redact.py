"""Secret masking for configuration debug logs."""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any

from trackrelay.config import TrackerConfig

_SECRET_SUFFIXES: tuple[str, ...] = ("_password", "_token")
# Webhook URLs commonly embed an access token.
_SECRET_FIELDS: frozenset[str] = frozenset({"webhook_url"})


def is_secret_field(name: str) -> bool:
    return name in _SECRET_FIELDS or name.endswith(_SECRET_SUFFIXES)


def redact_for_log(config: TrackerConfig) -> dict[str, Any]:
    """Return *config* as a flat dict with every set secret masked."""
    redacted: dict[str, Any] = {}
    for field in dataclasses.fields(config):
        value = getattr(config, field.name)
        if value is not None and is_secret_field(field.name):
            value = "<redacted>"
        elif isinstance(value, Enum):
            value = value.value
        redacted[field.name] = value
    return redacted
