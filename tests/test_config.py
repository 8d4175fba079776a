from __future__ import annotations

import pytest

from trackrelay.config import FailurePolicy, TrackerConfig, TransportKind
from trackrelay.exceptions import TrackerConfigError


def test_defaults_match_documented_values() -> None:
    config = TrackerConfig()
    assert config.min_move == 50.0
    assert config.min_speed == 1.5
    assert config.internet_test_timeout == 2000
    assert config.send_while_moving is False
    assert config.keep_files is False
    assert config.failure_policy == FailurePolicy.DISCARD
    assert config.email_to == "tracking@predictwind.com"
    assert config.track_dir == "track"


def test_from_env_reads_tracker_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_MIN_MOVE", "0")
    monkeypatch.setenv("TRACKER_MIN_SPEED", "2.5")
    monkeypatch.setenv("TRACKER_TRACK_FREQUENCY", "60")
    monkeypatch.setenv("TRACKER_INTERNET_TEST_TIMEOUT", "5000")
    monkeypatch.setenv("TRACKER_SEND_WHILE_MOVING", "yes")
    monkeypatch.setenv("TRACKER_FAILURE_POLICY", "REQUEUE")
    monkeypatch.setenv("TRACKER_TRANSPORT", "webhook")
    monkeypatch.setenv("TRACKER_WEBHOOK_URL", "https://example.com/hook")
    monkeypatch.setenv("TRACKER_FILTER_SOURCE", "gps.1")
    monkeypatch.setenv("TRACKER_MQTT_USERNAME", "boat")
    monkeypatch.setenv("TRACKER_MQTT_PASSWORD", "secret")

    config = TrackerConfig.from_env()

    assert config.min_move == 0.0
    assert config.min_speed == 2.5
    assert config.settle_window == 60.0
    assert config.internet_test_timeout == 5000
    assert config.send_while_moving is True
    assert config.failure_policy == FailurePolicy.REQUEUE
    assert config.transport == TransportKind.WEBHOOK
    assert config.filter_source == "gps.1"
    assert config.mqtt_username == "boat"
    assert config.mqtt_password == "secret"
    config.validate().validate_transport()


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_MIN_MOVE", "10")
    monkeypatch.setenv("TRACKER_KEEP_FILES", "1")
    config = TrackerConfig.from_env(min_move=75.0, keep_files=False)
    assert config.min_move == 75.0
    assert config.keep_files is False


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_MIN_MOVE", "far")
    with pytest.raises(TrackerConfigError):
        TrackerConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_move": -1.0},
        {"min_speed": -0.5},
        {"track_frequency": -1.0},
        {"send_interval": 0.0},
        {"internet_test_timeout": 0},
    ],
)
def test_validate_rejects_out_of_range(kwargs: dict) -> None:
    with pytest.raises(TrackerConfigError):
        TrackerConfig(**kwargs).validate()


def test_validate_transport_requires_target() -> None:
    with pytest.raises(TrackerConfigError, match="webhook_url"):
        TrackerConfig(transport=TransportKind.WEBHOOK).validate_transport()
    with pytest.raises(TrackerConfigError, match="email_host"):
        TrackerConfig().validate_transport()
    TrackerConfig(email_host="smtp.example.com", email_from="me@example.com").validate_transport()
