"""Internal constants shared across the library."""

#: Mean Earth radius in meters used by the equirectangular approximation.
EARTH_RADIUS_M = 6_371_000.0

# ------------------------------------------------------------------
# Speed units
# ------------------------------------------------------------------

#: One knot is exactly 1852 meters per hour.
METERS_PER_NAUTICAL_MILE = 1852.0

#: Multiply a speed in m/s by this factor to get knots (~1.943844).
MS_TO_KNOTS = 3600.0 / METERS_PER_NAUTICAL_MILE

# ------------------------------------------------------------------
# Track store layout
# ------------------------------------------------------------------

TRACK_FILE_NAME = "track.jsonl"
SNAPSHOT_SUFFIX = ".sending"
ARCHIVE_PREFIX = "track-"
DEFAULT_TRACK_DIR = "track"

# ------------------------------------------------------------------
# Delivery defaults
# ------------------------------------------------------------------

DEFAULT_PROBE_ADDRESS = "google.com"
DEFAULT_PROBE_TIMEOUT_MS = 2000
DEFAULT_RECIPIENT = "tracking@predictwind.com"

# Signal K paths consumed by the sample feed.
POSITION_PATH = "navigation.position"
SPEED_PATH = "navigation.speedOverGround"
