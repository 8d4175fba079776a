"""Pydantic models for samples, track points and feed envelopes."""

from trackrelay.models.delta import Delta, DeltaUpdate, DeltaValue
from trackrelay.models.samples import PositionSample, SpeedSample
from trackrelay.models.track import TrackPoint

__all__ = [
    "Delta",
    "DeltaUpdate",
    "DeltaValue",
    "PositionSample",
    "SpeedSample",
    "TrackPoint",
]
