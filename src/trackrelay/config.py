"""Tracker configuration for trackrelay."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from typing import Any

from trackrelay._constants import (
    DEFAULT_PROBE_ADDRESS,
    DEFAULT_PROBE_TIMEOUT_MS,
    DEFAULT_RECIPIENT,
    DEFAULT_TRACK_DIR,
)
from trackrelay.exceptions import TrackerConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


class FailurePolicy(StrEnum):
    """What happens to undelivered points when a drain cycle fails."""

    DISCARD = "discard"
    REQUEUE = "requeue"


class TransportKind(StrEnum):
    EMAIL = "email"
    WEBHOOK = "webhook"


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """Tracker configuration.

    Parameters
    ----------
    min_move : float
        Minimum move in meters between two logged positions. ``0``
        logs every position.
    min_speed : float
        Minimum speed over ground in knots that re-arms logging after a
        point was saved. ``0`` disables speed gating. Incoming speeds are
        m/s and are converted with ``MS_TO_KNOTS`` (3600 / 1852).
    send_interval : float
        Seconds between delivery attempts.
    track_frequency : float
        Minimum seconds between accepted position samples; faster samples
        are dropped. Also the settle window: delivery waits until no point
        was logged for twice this long. ``0`` disables both.
    internet_test_address : str
        Host probed before every delivery attempt.
    internet_test_timeout : int
        Probe timeout in milliseconds.
    send_while_moving : bool
        Attempt delivery even while the vessel is moving.
    filter_source : str or None
        Only use samples whose ``$source`` equals this value.
    track_dir : str
        Directory holding the track store. Relative paths are resolved
        against the current working directory.
    keep_files : bool
        Archive delivered track files instead of deleting them.
    failure_policy : FailurePolicy
        ``discard`` drops every point of a failed cycle (historic
        behaviour); ``requeue`` keeps undelivered points for the next cycle.
    transport : TransportKind
        ``email`` or ``webhook``.
    webhook_url : str or None
        Target URL for the webhook transport.
    email_host, email_port, email_user, email_password : SMTP settings
        Outgoing mail server; port 465 uses implicit TLS.
    email_from : str or None
        Sender address registered with the recipient.
    email_to : str
        Recipient address.
    mqtt_host : str or None
        Broker carrying Signal K deltas. ``None`` disables the MQTT feed.
    mqtt_port : int
        Broker port.
    mqtt_topic : str
        Topic carrying delta JSON.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_username, mqtt_password : str or None
        Broker credentials; unset connects anonymously.
    """

    min_move: float = 50.0
    min_speed: float = 1.5
    send_interval: float = 3600.0
    track_frequency: float = 0.0
    internet_test_address: str = DEFAULT_PROBE_ADDRESS
    internet_test_timeout: int = DEFAULT_PROBE_TIMEOUT_MS
    send_while_moving: bool = False
    filter_source: str | None = None
    track_dir: str = DEFAULT_TRACK_DIR
    keep_files: bool = False
    failure_policy: FailurePolicy = FailurePolicy.DISCARD
    transport: TransportKind = TransportKind.EMAIL
    webhook_url: str | None = None
    email_host: str | None = None
    email_port: int = 465
    email_user: str | None = None
    email_password: str | None = None
    email_from: str | None = None
    email_to: str = DEFAULT_RECIPIENT
    mqtt_host: str | None = None
    mqtt_port: int = 1883
    mqtt_topic: str = "signalk/delta"
    mqtt_keepalive: int = 60
    mqtt_username: str | None = None
    mqtt_password: str | None = None

    @property
    def settle_window(self) -> float:
        return self.track_frequency

    def validate(self) -> TrackerConfig:
        """Raise :class:`TrackerConfigError` on inconsistent settings."""
        if self.min_move < 0:
            raise TrackerConfigError(f"min_move must be >= 0, got {self.min_move}")
        if self.min_speed < 0:
            raise TrackerConfigError(f"min_speed must be >= 0, got {self.min_speed}")
        if self.track_frequency < 0:
            raise TrackerConfigError(f"track_frequency must be >= 0, got {self.track_frequency}")
        if self.send_interval <= 0:
            raise TrackerConfigError(f"send_interval must be > 0, got {self.send_interval}")
        if self.internet_test_timeout <= 0:
            raise TrackerConfigError(f"internet_test_timeout must be > 0, got {self.internet_test_timeout}")
        return self

    def validate_transport(self) -> TrackerConfig:
        """Raise :class:`TrackerConfigError` when the selected transport lacks its target."""
        if self.transport == TransportKind.WEBHOOK and not self.webhook_url:
            raise TrackerConfigError("webhook transport requires webhook_url")
        if self.transport == TransportKind.EMAIL:
            missing = [name for name in ("email_host", "email_from") if not getattr(self, name)]
            if missing:
                raise TrackerConfigError(f"email transport requires {', '.join(missing)}")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackerConfig:
        """Create configuration from ``TRACKER_*`` environment variables.

        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackerConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "TRACKER_INTERNET_TEST_ADDRESS": "internet_test_address",
            "TRACKER_FILTER_SOURCE": "filter_source",
            "TRACKER_TRACK_DIR": "track_dir",
            "TRACKER_WEBHOOK_URL": "webhook_url",
            "TRACKER_EMAIL_HOST": "email_host",
            "TRACKER_EMAIL_USER": "email_user",
            "TRACKER_EMAIL_PASSWORD": "email_password",
            "TRACKER_EMAIL_FROM": "email_from",
            "TRACKER_EMAIL_TO": "email_to",
            "TRACKER_MQTT_HOST": "mqtt_host",
            "TRACKER_MQTT_TOPIC": "mqtt_topic",
            "TRACKER_MQTT_USERNAME": "mqtt_username",
            "TRACKER_MQTT_PASSWORD": "mqtt_password",
        }
        _ENV_FLOAT_MAP = {
            "TRACKER_MIN_MOVE": "min_move",
            "TRACKER_MIN_SPEED": "min_speed",
            "TRACKER_SEND_INTERVAL": "send_interval",
            "TRACKER_TRACK_FREQUENCY": "track_frequency",
        }
        _ENV_INT_MAP = {
            "TRACKER_INTERNET_TEST_TIMEOUT": "internet_test_timeout",
            "TRACKER_EMAIL_PORT": "email_port",
            "TRACKER_MQTT_PORT": "mqtt_port",
            "TRACKER_MQTT_KEEPALIVE": "mqtt_keepalive",
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = val

        try:
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
            if "failure_policy" not in overrides and env.get("TRACKER_FAILURE_POLICY"):
                config_kwargs["failure_policy"] = FailurePolicy(env["TRACKER_FAILURE_POLICY"].strip().lower())
            if "transport" not in overrides and env.get("TRACKER_TRANSPORT"):
                config_kwargs["transport"] = TransportKind(env["TRACKER_TRANSPORT"].strip().lower())
        except ValueError as exc:
            raise TrackerConfigError(f"Invalid TRACKER_* environment value: {exc}") from exc

        if "send_while_moving" not in overrides:
            config_kwargs["send_while_moving"] = _env_bool(env.get("TRACKER_SEND_WHILE_MOVING"), False)
        if "keep_files" not in overrides:
            config_kwargs["keep_files"] = _env_bool(env.get("TRACKER_KEEP_FILES"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
