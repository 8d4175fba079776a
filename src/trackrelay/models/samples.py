"""Inbound position and speed samples."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trackrelay.ingestion.normalize import ensure_utc, safe_float


class PositionSample(BaseModel):
    """A timestamped position from the feed.

    ``latitude``/``longitude`` are ``None`` when the feed sent an
    incomplete fix; the motion gate rejects such samples. The timestamp
    is supplied by the source, never generated locally.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: float | None = None
    longitude: float | None = None
    timestamp: datetime
    source: str | None = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("timestamp")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SpeedSample(BaseModel):
    """Speed over ground in meters per second."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    speed: float = Field(..., description="Speed over ground in m/s")
    source: str | None = None
