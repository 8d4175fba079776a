"""Motion gate: decides which position samples become track points."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from trackrelay._constants import MS_TO_KNOTS
from trackrelay.geo import distance
from trackrelay.models.samples import PositionSample, SpeedSample
from trackrelay.models.track import TrackPoint

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LastPoint:
    """Last accepted point plus the local monotonic time it was received."""

    point: TrackPoint
    received_at: float


class MotionGate:
    """Stateful position filter.

    Motion state is in-memory only and starts fresh with every instance:
    ``should_log`` is true and there is no last point.

    With speed gating enabled (``min_speed > 0``) logging pauses after each
    accepted point until a speed sample above ``min_speed`` knots arrives,
    so a moving vessel logs once per movement burst rather than continuously.
    """

    def __init__(
        self,
        *,
        min_move: float = 0.0,
        min_speed: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_move = min_move
        self._min_speed = min_speed
        self._clock = clock
        self._started_at = clock()
        self._should_log = True
        self._last: LastPoint | None = None

    @property
    def should_log(self) -> bool:
        return self._should_log

    @property
    def last_point(self) -> LastPoint | None:
        return self._last

    @property
    def speed_gating(self) -> bool:
        return self._min_speed > 0

    def on_speed(self, sample: SpeedSample) -> None:
        """Re-arm logging once speed exceeds the threshold. Never disarms."""
        if not self.speed_gating or self._should_log:
            return
        if sample.speed * MS_TO_KNOTS > self._min_speed:
            _logger.debug("Speed %.2f m/s above %.2f kn, logging re-armed", sample.speed, self._min_speed)
            self._should_log = True

    def on_position(self, sample: PositionSample) -> TrackPoint | None:
        """Return the track point to append, or ``None`` when the sample is rejected.

        Rejected samples leave the gate state untouched.
        """
        if not self._should_log:
            return None

        last = self._last
        if last is not None and sample.timestamp < last.point.t:
            # Source clock went backwards; the sample is treated as corrupt.
            _logger.debug("Dropping position older than last point (%s < %s)", sample.timestamp, last.point.t)
            return None

        if sample.latitude is None or sample.longitude is None:
            return None

        if self._min_move and last is not None:
            moved = distance(last.point, sample)
            if moved < self._min_move:
                _logger.debug("Moved %.1f m < %.1f m, skipping", moved, self._min_move)
                return None

        point = TrackPoint(lat=sample.latitude, lon=sample.longitude, t=sample.timestamp)
        self._last = LastPoint(point=point, received_at=self._clock())
        if self.speed_gating:
            self._should_log = False
        return point

    def seconds_since_last_point(self) -> float:
        """Seconds since the last accepted point, or since the gate was created."""
        reference = self._last.received_at if self._last is not None else self._started_at
        return self._clock() - reference

    def is_settled(self, settle_window: float) -> bool:
        """True when nothing was accepted for at least ``2 * settle_window`` seconds."""
        return self.seconds_since_last_point() >= settle_window * 2
