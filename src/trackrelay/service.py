"""Tracker lifecycle: wires feeds, motion gate, store and delivery together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import aiohttp

from trackrelay._mqtt import MqttSampleFeed
from trackrelay._redact import redact_for_log
from trackrelay._transport import EmailTransport, Transport, WebhookTransport
from trackrelay.config import TrackerConfig, TransportKind
from trackrelay.dispatcher import BatchDispatcher
from trackrelay.exceptions import StorageError, StoreDirectoryError, SubscriptionError, TrackRelayError
from trackrelay.feed import SampleFeed
from trackrelay.gate import MotionGate
from trackrelay.ingestion.delta import samples_from_delta
from trackrelay.models.samples import PositionSample, SpeedSample
from trackrelay.probe import HttpReachabilityProbe, Probe
from trackrelay.scheduler import DeliveryScheduler, PeriodicTrigger, TickOutcome
from trackrelay.store import TrackStore, validate_directory

_logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]

#: Seconds ``stop()`` waits for queued samples to be stored.
_CAPTURE_FLUSH_TIMEOUT_S = 2.0


class TrackerService:
    """Capture positions into the track store and deliver them periodically.

    Usage::

        async with TrackerService(config) as service:
            service.handle_delta(delta)
            ...

    or call :meth:`start` / :meth:`stop` explicitly. A service instance can
    be started again after it was stopped; motion state starts fresh.
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        transport: Transport | None = None,
        probe: Probe | None = None,
        feeds: Sequence[SampleFeed] = (),
        session: aiohttp.ClientSession | None = None,
        on_status: StatusCallback | None = None,
        on_error: StatusCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._transport_override = transport
        self._probe_override = probe
        self._extra_feeds = list(feeds)
        self._external_session = session is not None
        self._http_session = session
        self._on_status = on_status
        self._on_error = on_error
        self._clock = clock

        self._gate: MotionGate | None = None
        self._store: TrackStore | None = None
        self._scheduler: DeliveryScheduler | None = None
        self._trigger: PeriodicTrigger | None = None
        self._feeds: list[SampleFeed] = []
        self._queue: asyncio.Queue[PositionSample | SpeedSample] | None = None
        self._capture_task: asyncio.Task[None] | None = None
        self._deliveries: set[asyncio.Task[TickOutcome]] = set()
        self._last_position_at: float | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TrackerService:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._capture_task is not None

    @property
    def gate(self) -> MotionGate:
        if self._gate is None:
            raise TrackRelayError("Tracker not started")
        return self._gate

    @property
    def store(self) -> TrackStore:
        if self._store is None:
            raise TrackRelayError("Tracker not started")
        return self._store

    @property
    def scheduler(self) -> DeliveryScheduler:
        if self._scheduler is None:
            raise TrackRelayError("Tracker not started")
        return self._scheduler

    # ------------------------------------------------------------------
    # Status channel
    # ------------------------------------------------------------------

    def _set_status(self, message: str) -> None:
        _logger.info(message)
        if self._on_status is not None:
            self._on_status(message)

    def _set_error(self, message: str) -> None:
        _logger.error(message)
        if self._on_error is not None:
            self._on_error(message)

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Validate config and store directory, then start capture and delivery.

        Raises :class:`StoreDirectoryError` (after reporting it) when the
        store directory is unusable; nothing is started in that case.
        """
        if self.is_running:
            return
        config = self._config.validate()
        if self._transport_override is None:
            config.validate_transport()
        _logger.debug("Starting tracker with config %s", redact_for_log(config))

        try:
            track_dir = validate_directory(config.track_dir)
        except StoreDirectoryError as exc:
            self._set_error(str(exc))
            raise

        self._store = TrackStore(track_dir)
        self._gate = MotionGate(min_move=config.min_move, min_speed=config.min_speed, clock=self._clock)

        if self._http_session is None and (self._transport_override is None or self._probe_override is None):
            self._http_session = aiohttp.ClientSession()
        transport = self._transport_override or self._build_transport()
        probe = self._probe_override or HttpReachabilityProbe(
            self._require_session(),
            address=config.internet_test_address,
            timeout_ms=config.internet_test_timeout,
        )
        dispatcher = BatchDispatcher(
            self._store,
            transport,
            policy=config.failure_policy,
            keep_files=config.keep_files,
        )
        self._scheduler = DeliveryScheduler(
            gate=self._gate,
            store=self._store,
            probe=probe,
            dispatcher=dispatcher,
            send_while_moving=config.send_while_moving,
            settle_window=config.settle_window,
            probe_timeout=config.internet_test_timeout / 1000.0,
        )

        self._queue = asyncio.Queue()
        self._last_position_at = None
        self._capture_task = asyncio.create_task(self._capture_loop(), name="trackrelay-capture")
        self._start_feeds()

        self._trigger = PeriodicTrigger(config.send_interval, self._on_tick)
        self._trigger.start()
        _logger.debug("Track logger started, now logging to %s", track_dir)
        self._set_status("Started")

    async def stop(self) -> None:
        """Stop the schedule, cancel feeds and release owned resources."""
        if self._trigger is not None:
            await self._trigger.stop()
            self._trigger = None

        deliveries = list(self._deliveries)
        for delivery in deliveries:
            delivery.cancel()
        for delivery in deliveries:
            with contextlib.suppress(asyncio.CancelledError):
                await delivery

        for feed in self._feeds:
            try:
                feed.stop()
            except Exception:
                _logger.warning("Failed to stop feed %r", feed, exc_info=True)
        self._feeds = []

        task = self._capture_task
        self._capture_task = None
        if task is not None:
            if self._queue is not None:
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._queue.join(), timeout=_CAPTURE_FLUSH_TIMEOUT_S)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._queue = None

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

        if task is not None:
            self._set_status("Stopped")

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise TrackRelayError("HTTP session not initialized")
        return self._http_session

    def _build_transport(self) -> Transport:
        config = self._config
        if config.transport == TransportKind.WEBHOOK:
            assert config.webhook_url is not None  # noqa: S101
            return WebhookTransport(self._require_session(), config.webhook_url)
        assert config.email_host is not None and config.email_from is not None  # noqa: S101
        return EmailTransport(
            host=config.email_host,
            port=config.email_port,
            user=config.email_user,
            password=config.email_password,
            sender=config.email_from,
            recipient=config.email_to,
        )

    def _start_feeds(self) -> None:
        config = self._config
        feeds: list[SampleFeed] = list(self._extra_feeds)
        if config.mqtt_host:
            feeds.append(
                MqttSampleFeed(
                    host=config.mqtt_host,
                    port=config.mqtt_port,
                    topic=config.mqtt_topic,
                    keepalive=config.mqtt_keepalive,
                    username=config.mqtt_username,
                    password=config.mqtt_password,
                )
            )
        loop = asyncio.get_running_loop()
        for feed in feeds:
            try:
                feed.start(loop, self.handle_delta, self._set_error)
            except SubscriptionError as exc:
                # Degraded mode: keep running without this feed.
                self._set_error(f"Error subscription to data: {exc}")
                continue
            self._feeds.append(feed)

    # ------------------------------------------------------------------
    # Capture path
    # ------------------------------------------------------------------

    def _accepts_source(self, source: str | None) -> bool:
        wanted = self._config.filter_source
        return not wanted or source == wanted

    def handle_delta(self, delta: Mapping[str, Any]) -> None:
        """Queue the samples carried by one Signal K delta."""
        samples = samples_from_delta(delta, self._config.filter_source)
        for speed in samples.speeds:
            self.handle_speed(speed)
        for position in samples.positions:
            self.handle_position(position)

    def handle_position(self, sample: PositionSample) -> None:
        if self._queue is None or not self._accepts_source(sample.source):
            return
        # At most one position per track_frequency seconds.
        min_period = self._config.track_frequency
        now = self._clock()
        if min_period and self._last_position_at is not None and now - self._last_position_at < min_period:
            return
        self._last_position_at = now
        self._queue.put_nowait(sample)

    def handle_speed(self, sample: SpeedSample) -> None:
        if self._queue is None or not self._accepts_source(sample.source):
            return
        self._queue.put_nowait(sample)

    async def _capture_loop(self) -> None:
        assert self._queue is not None  # noqa: S101
        queue = self._queue
        while True:
            sample = await queue.get()
            try:
                await self._capture(sample)
            finally:
                queue.task_done()

    async def _capture(self, sample: PositionSample | SpeedSample) -> None:
        gate = self.gate
        if isinstance(sample, SpeedSample):
            gate.on_speed(sample)
            return
        point = gate.on_position(sample)
        if point is None:
            return
        try:
            await self.store.append(point)
        except StorageError as exc:
            _logger.warning("Dropping track point: %s", exc)

    async def flush(self) -> None:
        """Wait until every queued sample went through the gate."""
        if self._queue is not None:
            await self._queue.join()

    # ------------------------------------------------------------------
    # Delivery path
    # ------------------------------------------------------------------

    async def send_now(self) -> TickOutcome:
        """Run one scheduler tick immediately.

        The cycle runs as a task owned by the service, so :meth:`stop`
        aborts it; the caller then sees ``CancelledError``.
        """
        delivery = asyncio.create_task(self._on_tick(), name="trackrelay-send-now")
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)
        return await delivery

    async def _on_tick(self) -> TickOutcome:
        outcome = await self.scheduler.tick()
        result = self.scheduler.last_result
        if outcome == TickOutcome.DELIVERED and result is not None:
            self._set_status(f"Delivered {result.delivered} point(s)")
        elif outcome == TickOutcome.FAILED:
            self._set_error("Sending track data failed, will retry on next schedule")
        return outcome
