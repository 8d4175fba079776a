"""Network reachability probe."""

from __future__ import annotations

import logging
from typing import Protocol

import aiohttp

from trackrelay._constants import DEFAULT_PROBE_ADDRESS, DEFAULT_PROBE_TIMEOUT_MS

_logger = logging.getLogger(__name__)


class Probe(Protocol):
    """Structural probe interface so tests can pass simple doubles."""

    async def is_reachable(self) -> bool:
        ...


def _target_url(address: str) -> str:
    if "://" in address:
        return address
    return f"https://{address}"


class HttpReachabilityProbe:
    """Bounded-time check that a reference host answers over HTTP(S).

    Any HTTP response counts as reachable; only connection errors and
    timeouts count as offline.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        address: str = DEFAULT_PROBE_ADDRESS,
        timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    ) -> None:
        self._http = session
        self._url = _target_url(address)
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0)

    async def is_reachable(self) -> bool:
        _logger.debug("Testing internet connection via %s", self._url)
        try:
            async with self._http.head(self._url, timeout=self._timeout, allow_redirects=False) as resp:
                _logger.debug("Probe answered HTTP %s", resp.status)
                return True
        except (aiohttp.ClientError, TimeoutError) as exc:
            _logger.debug("Probe failed: %s", exc)
            return False
