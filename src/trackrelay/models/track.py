"""Persisted track point model."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from trackrelay.ingestion.normalize import ensure_utc


class TrackPoint(BaseModel):
    """One persisted ``(lat, lon, t)`` record.

    Serialized as a single compact JSON object per line::

        {"lat":59.91,"lon":10.75,"t":"2024-06-01T12:00:00Z"}
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    lat: float
    lon: float
    t: datetime

    @field_validator("t")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_line(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_line(cls, line: str) -> TrackPoint:
        """Parse one store line. Raises :class:`pydantic.ValidationError` on bad input."""
        return cls.model_validate_json(line)

    def render(self) -> str:
        """Text body sent to the recipient: ``"<lat> <lon> <t>"``."""
        return f"{self.lat!r} {self.lon!r} {self.t.isoformat()}"
