"""Signal K delta -> sample conversion."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from trackrelay._constants import POSITION_PATH, SPEED_PATH
from trackrelay.ingestion.normalize import parse_timestamp, safe_float
from trackrelay.models.delta import Delta
from trackrelay.models.samples import PositionSample, SpeedSample

_logger = logging.getLogger(__name__)


@dataclass
class DeltaSamples:
    positions: list[PositionSample] = field(default_factory=list)
    speeds: list[SpeedSample] = field(default_factory=list)


def _position_from_value(value: Any, update_ts: str | None, source: str | None) -> PositionSample | None:
    timestamp = parse_timestamp(update_ts)
    if timestamp is None:
        _logger.debug("Dropping position without usable timestamp: %r", update_ts)
        return None
    if not isinstance(value, Mapping):
        value = {}
    return PositionSample(
        latitude=value.get("latitude"),
        longitude=value.get("longitude"),
        timestamp=timestamp,
        source=source,
    )


def samples_from_delta(delta: Mapping[str, Any] | Delta, source_filter: str | None = None) -> DeltaSamples:
    """Extract position and speed samples from one delta message.

    Updates whose ``$source`` differs from *source_filter* (when set) are
    skipped. Unknown paths are ignored. A malformed envelope yields no
    samples.
    """
    result = DeltaSamples()
    if isinstance(delta, Delta):
        parsed = delta
    else:
        try:
            parsed = Delta.model_validate(delta)
        except ValidationError:
            _logger.debug("Ignoring malformed delta", exc_info=True)
            return result

    for update in parsed.updates:
        if source_filter and update.source != source_filter:
            continue
        for item in update.values:
            if item.path == POSITION_PATH:
                sample = _position_from_value(item.value, update.timestamp, update.source)
                if sample is not None:
                    result.positions.append(sample)
            elif item.path == SPEED_PATH:
                speed = safe_float(item.value)
                if speed is not None:
                    result.speeds.append(SpeedSample(speed=speed, source=update.source))
    return result
