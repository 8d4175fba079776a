"""Delivery scheduler and the periodic trigger that drives it."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from trackrelay.dispatcher import BatchDispatcher, DrainResult
from trackrelay.exceptions import StorageError
from trackrelay.gate import MotionGate
from trackrelay.probe import Probe
from trackrelay.store import TrackStore

_logger = logging.getLogger(__name__)


class TickOutcome(StrEnum):
    MOVING = "moving"
    EMPTY = "empty"
    OFFLINE = "offline"
    BUSY = "busy"
    DELIVERED = "delivered"
    FAILED = "failed"


class DeliveryScheduler:
    """Decide on every tick whether a drain cycle should run.

    Three gates are checked in order, stopping at the first that fails:
    vessel settled, store non-empty, network reachable. Gate failures are
    never errors; the next tick simply tries again.
    """

    def __init__(
        self,
        *,
        gate: MotionGate,
        store: TrackStore,
        probe: Probe,
        dispatcher: BatchDispatcher,
        send_while_moving: bool = False,
        settle_window: float = 0.0,
        probe_timeout: float = 2.0,
    ) -> None:
        self._gate = gate
        self._store = store
        self._probe = probe
        self._dispatcher = dispatcher
        self._send_while_moving = send_while_moving
        self._settle_window = settle_window
        self._probe_timeout = probe_timeout
        self._cycle_lock = asyncio.Lock()
        self.last_result: DrainResult | None = None

    @property
    def is_busy(self) -> bool:
        return self._cycle_lock.locked()

    def vessel_settled(self) -> bool:
        if self._send_while_moving or not self._settle_window:
            return True
        idle = self._gate.seconds_since_last_point()
        if self._gate.is_settled(self._settle_window):
            _logger.debug("Vessel stopped moving, last move %.0f seconds ago", idle)
            return True
        _logger.debug("Vessel is still moving, last move %.0f seconds ago", idle)
        return False

    async def has_queued_data(self) -> bool:
        try:
            queued = await self._store.has_data()
        except OSError as exc:
            _logger.debug("Track store not accessible: %s", exc)
            return False
        _logger.debug("Track store %s has data: %s", self._store.path, queued)
        return queued

    async def network_reachable(self) -> bool:
        try:
            reachable = await asyncio.wait_for(self._probe.is_reachable(), timeout=self._probe_timeout)
        except Exception as exc:
            _logger.debug("Reachability probe failed: %r", exc)
            return False
        _logger.debug("Internet connection = %s", reachable)
        return bool(reachable)

    async def tick(self) -> TickOutcome:
        if self._cycle_lock.locked():
            _logger.debug("Delivery cycle still running, skipping tick")
            return TickOutcome.BUSY
        async with self._cycle_lock:
            if not self.vessel_settled():
                return TickOutcome.MOVING
            if not await self.has_queued_data():
                return TickOutcome.EMPTY
            if not await self.network_reachable():
                return TickOutcome.OFFLINE
            try:
                result = await self._dispatcher.drain()
            except StorageError as exc:
                _logger.warning("Delivery cycle aborted: %s", exc)
                return TickOutcome.FAILED
            self.last_result = result
            return TickOutcome.FAILED if result.failed else TickOutcome.DELIVERED


class PeriodicTrigger:
    """Fire an async callback every *interval* seconds.

    Each firing runs as its own task, so a slow callback does not delay
    the schedule; overlapping runs are the callback's concern.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        *,
        name: str = "delivery",
    ) -> None:
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[None]] = set()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        _logger.debug("Setting %s trigger to every %.0f seconds", self._name, self._interval)
        self._task = asyncio.create_task(self._loop(), name=f"trackrelay-{self._name}-trigger")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            run = asyncio.create_task(self._fire(), name=f"trackrelay-{self._name}-run")
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception:
            _logger.exception("Periodic %s callback failed", self._name)

    async def stop(self) -> None:
        """Cancel the schedule and any run still in flight."""
        tasks = [t for t in (self._task, *self._runs) if t is not None]
        self._task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
