"""paho-mqtt sample feed carrying Signal K delta JSON."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, cast

import paho.mqtt.client as mqtt

from trackrelay.exceptions import SubscriptionError
from trackrelay.feed import DeltaCallback, ErrorCallback


def decode_delta_payload(payload: bytes) -> dict[str, Any]:
    """Parse an MQTT payload into a delta object. Raises ``ValueError``."""
    parsed = json.loads(payload.decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("MQTT payload is not a JSON object")
    return parsed


class MqttSampleFeed:
    """Threaded paho-mqtt subscription that emits deltas onto an asyncio loop."""

    def __init__(
        self,
        *,
        host: str,
        topic: str,
        port: int = 1883,
        keepalive: int = 60,
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._topic = topic
        self._keepalive = keepalive
        self._client_id = client_id
        self._username = username
        self._password = password
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(
        self,
        loop: asyncio.AbstractEventLoop,
        on_delta: DeltaCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Connect and subscribe; raise :class:`SubscriptionError` if the broker is unreachable."""
        self.stop()
        self._logger.debug(
            "MQTT feed start requested host=%s port=%s topic=%s",
            self._host,
            self._port,
            self._topic,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
        )
        client.enable_logger(self._logger)
        if self._username:
            client.username_pw_set(self._username, self._password)

        topic = self._topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                loop.call_soon_threadsafe(on_error, f"Error subscription to data: {reason_code}")
                return
            self._logger.debug("MQTT connected, subscribing topic=%s", topic)
            c.subscribe(topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                delta = decode_delta_payload(msg.payload)
            except ValueError:
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                return
            loop.call_soon_threadsafe(on_delta, delta)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(self._host, self._port, keepalive=self._keepalive)
        except OSError as exc:
            raise SubscriptionError(f"Cannot connect to MQTT broker {self._host}:{self._port}: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Unsubscribe and disconnect if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
