"""Custom exception hierarchy for trackrelay."""

from __future__ import annotations


class TrackRelayError(Exception):
    """Base exception for all trackrelay errors."""


class TrackerConfigError(TrackRelayError):
    """Invalid or missing configuration."""


class StorageError(TrackRelayError):
    """Durable read/write failure on the track store."""


class StoreDirectoryError(StorageError):
    """The store directory cannot be created or is not read/writable.

    Raised once at startup; the service refuses to start capturing.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class TransportError(TrackRelayError):
    """A single point could not be delivered (network, non-2xx, SMTP)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        target: str = "",
    ) -> None:
        self.status_code = status_code
        self.target = target
        super().__init__(message)


class SubscriptionError(TrackRelayError):
    """Inbound sample feed could not be established or failed."""
