from __future__ import annotations

import dataclasses

from trackrelay._redact import is_secret_field, redact_for_log
from trackrelay.config import TrackerConfig


def test_redact_for_log_masks_set_secrets() -> None:
    config = TrackerConfig(
        email_host="smtp.example.com",
        email_user="me@example.com",
        email_password="hunter2",
        mqtt_password="broker-secret",
        webhook_url="https://example.com/hook?token=abc",
    )

    redacted = redact_for_log(config)

    assert redacted["email_password"] == "<redacted>"
    assert redacted["mqtt_password"] == "<redacted>"
    assert redacted["webhook_url"] == "<redacted>"
    assert redacted["email_user"] == "me@example.com"
    assert redacted["failure_policy"] == "discard"
    assert "hunter2" not in repr(redacted)


def test_redact_for_log_keeps_unset_secrets_visible() -> None:
    redacted = redact_for_log(TrackerConfig())
    assert redacted["email_password"] is None
    assert redacted["webhook_url"] is None


def test_every_credential_field_is_secret() -> None:
    names = {field.name for field in dataclasses.fields(TrackerConfig)}
    assert {name for name in names if is_secret_field(name)} == {"email_password", "mqtt_password", "webhook_url"}
