"""trackrelay - Store-and-forward position tracking for intermittently connected vessels."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("trackrelay")
except PackageNotFoundError:
    __version__ = "0+local"
from trackrelay.config import FailurePolicy, TrackerConfig, TransportKind
from trackrelay.dispatcher import BatchDispatcher, DrainResult
from trackrelay.exceptions import (
    StorageError,
    StoreDirectoryError,
    SubscriptionError,
    TrackerConfigError,
    TrackRelayError,
    TransportError,
)
from trackrelay.gate import MotionGate
from trackrelay.geo import distance
from trackrelay.models import PositionSample, SpeedSample, TrackPoint
from trackrelay.scheduler import DeliveryScheduler, PeriodicTrigger, TickOutcome
from trackrelay.service import TrackerService
from trackrelay.store import TrackStore, validate_directory

__all__ = [
    "__version__",
    "BatchDispatcher",
    "DeliveryScheduler",
    "DrainResult",
    "FailurePolicy",
    "MotionGate",
    "PeriodicTrigger",
    "PositionSample",
    "SpeedSample",
    "StorageError",
    "StoreDirectoryError",
    "SubscriptionError",
    "TickOutcome",
    "TrackPoint",
    "TrackRelayError",
    "TrackStore",
    "TrackerConfig",
    "TrackerConfigError",
    "TrackerService",
    "TransportError",
    "TransportKind",
    "distance",
    "validate_directory",
]
