"""Batch dispatcher: drains the track store through a one-message transport."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from trackrelay._transport import Transport
from trackrelay.config import FailurePolicy
from trackrelay.exceptions import TransportError
from trackrelay.models.track import TrackPoint
from trackrelay.store import TrackStore

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DrainResult:
    """Outcome of one drain cycle.

    ``discarded`` counts undelivered points dropped because of a transport
    failure (``FailurePolicy.DISCARD``); ``requeued`` counts points kept
    for the next cycle (``FailurePolicy.REQUEUE``). ``skipped`` counts
    malformed records that could not be parsed.
    """

    attempted: int = 0
    delivered: int = 0
    skipped: int = 0
    failed: bool = False
    discarded: int = 0
    requeued: int = 0


class BatchDispatcher:
    """Deliver queued points oldest first, one transport call per point.

    The first transport failure ends the cycle; any exception other than
    cancellation raised by ``send`` counts as a failure. With the default
    ``DISCARD`` policy the whole snapshot is then removed, including the
    failed point and every point queued after it. ``REQUEUE`` keeps those
    points for the next cycle instead.

    If the cycle is cancelled, records that were not confirmed delivered
    are always kept.
    """

    def __init__(
        self,
        store: TrackStore,
        transport: Transport,
        *,
        policy: FailurePolicy = FailurePolicy.DISCARD,
        keep_files: bool = False,
    ) -> None:
        self._store = store
        self._transport = transport
        self._policy = policy
        self._keep_files = keep_files

    async def drain(self) -> DrainResult:
        if not await self._store.snapshot():
            await self._store.finish_cycle()
            return DrainResult()

        _logger.info("Sending queued track points")
        attempted = delivered = skipped = 0
        remaining = 0
        failed = False
        try:
            async with contextlib.aclosing(self._store.drain_lines()) as records:
                async for record in records:
                    try:
                        point = TrackPoint.from_line(record)
                    except ValidationError:
                        _logger.warning("Skipping malformed track record: %s", record[:200])
                        skipped += 1
                        continue
                    attempted += 1
                    try:
                        await self._transport.send(point.render())
                    except TransportError as exc:
                        _logger.warning("Sending point failed, stopping this cycle: %s", exc)
                        failed = True
                        break
                    except Exception:
                        _logger.exception("Transport raised unexpectedly, stopping this cycle")
                        failed = True
                        break
                    delivered += 1
                if failed:
                    # The failed record plus everything not yet attempted.
                    remaining = 1
                    async for _ in records:
                        remaining += 1
        except asyncio.CancelledError:
            kept = await asyncio.shield(self._store.discard_head(delivered + skipped))
            _logger.info("Delivery cancelled after %d point(s), %d kept for next cycle", delivered, kept)
            raise

        if failed and self._policy == FailurePolicy.REQUEUE:
            requeued = await self._store.discard_head(delivered + skipped)
            _logger.info("Delivered %d point(s), %d requeued", delivered, requeued)
            return DrainResult(
                attempted=attempted,
                delivered=delivered,
                skipped=skipped,
                failed=True,
                requeued=requeued,
            )

        await self._store.finish_cycle(keep=self._keep_files)
        if failed:
            _logger.warning("Delivered %d point(s), %d undelivered point(s) discarded", delivered, remaining)
        else:
            _logger.info("Delivered %d point(s)", delivered)
        return DrainResult(
            attempted=attempted,
            delivered=delivered,
            skipped=skipped,
            failed=failed,
            discarded=remaining,
        )
