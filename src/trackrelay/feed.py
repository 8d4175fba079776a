"""Inbound sample feed interface."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

DeltaCallback = Callable[[dict[str, Any]], None]
ErrorCallback = Callable[[str], None]


class SampleFeed(Protocol):
    """A push source of Signal K delta messages.

    ``start`` must arrange for *on_delta* to be called on *loop*'s thread
    and raise :class:`~trackrelay.exceptions.SubscriptionError` when the
    subscription cannot be established. ``stop`` cancels the subscription
    and must be safe to call more than once.
    """

    def start(
        self,
        loop: asyncio.AbstractEventLoop,
        on_delta: DeltaCallback,
        on_error: ErrorCallback,
    ) -> None:
        ...

    def stop(self) -> None:
        ...
