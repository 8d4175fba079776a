from __future__ import annotations

from datetime import UTC, datetime, timedelta

from trackrelay._constants import MS_TO_KNOTS
from trackrelay.gate import MotionGate
from trackrelay.models.samples import PositionSample, SpeedSample

_T0 = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _pos(lat: float | None, lon: float | None, seconds: float = 0.0) -> PositionSample:
    return PositionSample(latitude=lat, longitude=lon, timestamp=_T0 + timedelta(seconds=seconds))


def _knots(knots: float) -> SpeedSample:
    return SpeedSample(speed=knots / MS_TO_KNOTS)


def test_min_move_zero_logs_every_valid_sample() -> None:
    gate = MotionGate(min_move=0, min_speed=0)
    accepted = [gate.on_position(_pos(0.0, 0.0, s)) for s in range(5)]
    assert all(point is not None for point in accepted)


def test_scenario_min_move_100() -> None:
    gate = MotionGate(min_move=100, min_speed=0)

    first = gate.on_position(_pos(0.0, 0.0, 0))
    second = gate.on_position(_pos(0.0, 0.0005, 10))  # ~55.6 m
    third = gate.on_position(_pos(0.0, 0.0002, 20))  # ~22 m from the first

    assert first is not None
    assert second is None
    assert third is None
    assert gate.last_point is not None
    assert gate.last_point.point == first


def test_sample_at_or_beyond_min_move_is_accepted() -> None:
    gate = MotionGate(min_move=50, min_speed=0)
    assert gate.on_position(_pos(0.0, 0.0, 0)) is not None
    assert gate.on_position(_pos(0.0, 0.0004, 1)) is None  # ~44 m
    assert gate.on_position(_pos(0.0, 0.0005, 2)) is not None  # ~55 m


def test_older_sample_rejected_regardless_of_distance() -> None:
    gate = MotionGate(min_move=0, min_speed=0)
    assert gate.on_position(_pos(0.0, 0.0, 60)) is not None
    assert gate.on_position(_pos(10.0, 10.0, 30)) is None
    # Same timestamp is not older.
    assert gate.on_position(_pos(0.0, 0.001, 60)) is not None


def test_missing_coordinates_rejected_without_state_change() -> None:
    gate = MotionGate(min_move=0, min_speed=1.5)
    assert gate.on_position(_pos(None, 1.0)) is None
    assert gate.on_position(_pos(1.0, None)) is None
    assert gate.should_log is True
    assert gate.last_point is None


def test_speed_gating_pauses_after_each_point() -> None:
    gate = MotionGate(min_move=0, min_speed=1.5)

    assert gate.on_position(_pos(0.0, 0.0, 0)) is not None
    assert gate.should_log is False
    assert gate.on_position(_pos(0.0, 0.01, 10)) is None

    gate.on_speed(_knots(1.0))
    assert gate.on_position(_pos(0.0, 0.01, 20)) is None

    gate.on_speed(_knots(2.0))
    assert gate.should_log is True
    assert gate.on_position(_pos(0.0, 0.01, 30)) is not None
    assert gate.should_log is False


def test_speed_exactly_at_threshold_does_not_rearm() -> None:
    gate = MotionGate(min_move=0, min_speed=2.0)
    gate.on_position(_pos(0.0, 0.0, 0))
    gate.on_speed(SpeedSample(speed=1.0))  # 1 m/s is ~1.94 kn
    assert gate.should_log is False
    gate.on_speed(SpeedSample(speed=1.03))  # ~2.002 kn
    assert gate.should_log is True


def test_speed_never_disarms_logging() -> None:
    gate = MotionGate(min_move=0, min_speed=1.5)
    gate.on_speed(_knots(0.0))
    assert gate.should_log is True


def test_zero_min_speed_never_engages_gating() -> None:
    gate = MotionGate(min_move=0, min_speed=0)
    for s in range(3):
        assert gate.on_position(_pos(0.0, 0.0, s)) is not None
        assert gate.should_log is True


def test_rejected_distance_keeps_speed_gate_open() -> None:
    gate = MotionGate(min_move=100, min_speed=1.5)
    gate.on_position(_pos(0.0, 0.0, 0))
    gate.on_speed(_knots(5.0))
    assert gate.on_position(_pos(0.0, 0.0001, 1)) is None
    assert gate.should_log is True


def test_settle_tracking_uses_local_receipt_time() -> None:
    clock = _Clock()
    gate = MotionGate(min_move=0, min_speed=0, clock=clock)

    clock.now += 5
    assert gate.seconds_since_last_point() == 5
    gate.on_position(_pos(0.0, 0.0, 0))
    assert gate.seconds_since_last_point() == 0

    clock.now += 19
    assert gate.is_settled(10) is False
    clock.now += 1
    assert gate.is_settled(10) is True
