"""Short-range distance between two coordinates."""

from __future__ import annotations

import math
from typing import Any

from trackrelay._constants import EARTH_RADIUS_M


def _lat_lon(point: Any) -> tuple[float, float]:
    lat = getattr(point, "latitude", None)
    if lat is None:
        return float(point.lat), float(point.lon)
    return float(lat), float(point.longitude)


def distance(from_point: Any, to_point: Any) -> float:
    """Equirectangular distance in meters.

    Accurate for displacements up to a few tens of kilometers, which is
    all the motion filter needs. Points may be samples (``latitude`` /
    ``longitude``) or track points (``lat`` / ``lon``).

    See https://www.movable-type.co.uk/scripts/latlong.html
    """
    lat1, lon1 = _lat_lon(from_point)
    lat2, lon2 = _lat_lon(to_point)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    x = math.radians(lon2 - lon1) * math.cos((phi1 + phi2) / 2)
    y = phi2 - phi1
    return math.hypot(x, y) * EARTH_RADIUS_M
