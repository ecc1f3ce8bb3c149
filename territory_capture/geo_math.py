"""Pure geometry helpers for fixes and rings.

Distances are great-circle (haversine). Intersection, centroid and area work on
raw degree coordinates, which is accurate enough for the small, mid-latitude
loops a walking player closes.
"""

from __future__ import annotations

import math
from typing import Sequence

from .models import Coord

EARTH_RADIUS_M = 6371000.0

# Empirical degrees^2 -> metres^2 factor (roughly 111 km squared).
AREA_SCALE_M2_PER_DEG2 = 1.23e10


def distance(first: Coord, second: Coord) -> float:
    """Return the haversine distance between two coordinates in metres."""

    sin = math.sin
    cos = math.cos
    radians = math.radians
    lat1_rad = radians(first.latitude)
    lat2_rad = radians(second.latitude)
    delta_lat = lat2_rad - lat1_rad
    delta_lon = radians(second.longitude - first.longitude)
    sin_half_lat = sin(delta_lat / 2.0)
    sin_half_lon = sin(delta_lon / 2.0)
    a = sin_half_lat**2 + cos(lat1_rad) * cos(lat2_rad) * sin_half_lon**2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def _orientation(origin: Coord, tip: Coord, point: Coord) -> float:
    return (tip.latitude - origin.latitude) * (point.longitude - origin.longitude) - (
        tip.longitude - origin.longitude
    ) * (point.latitude - origin.latitude)


def _opposite(first: float, second: float) -> bool:
    return (first > 0 and second < 0) or (first < 0 and second > 0)


def segments_intersect(a1: Coord, a2: Coord, b1: Coord, b2: Coord) -> bool:
    """Return True only when segment ``a1-a2`` properly crosses ``b1-b2``.

    Collinear, touching and shared-endpoint configurations all report False.
    """

    d1 = _orientation(a1, a2, b1)
    d2 = _orientation(a1, a2, b2)
    d3 = _orientation(b1, b2, a1)
    d4 = _orientation(b1, b2, a2)
    return _opposite(d1, d2) and _opposite(d3, d4)


def centroid(ring: Sequence[Coord]) -> Coord:
    """Arithmetic mean of the ring's points (not area weighted)."""

    if not ring:
        raise ValueError("Cannot compute the centroid of an empty ring")
    count = len(ring)
    lat = sum(point.latitude for point in ring)
    lon = sum(point.longitude for point in ring)
    return Coord(lat / count, lon / count)


def polygon_area(ring: Sequence[Coord]) -> float:
    """Planar shoelace area of ``ring`` scaled to approximate square metres."""

    count = len(ring)
    if count < 3:
        return 0.0
    total = 0.0
    for index in range(count):
        current = ring[index]
        following = ring[(index + 1) % count]
        total += current.latitude * following.longitude
        total -= following.latitude * current.longitude
    return abs(total / 2.0) * AREA_SCALE_M2_PER_DEG2


def path_length(points: Sequence[Coord]) -> float:
    """Sum of haversine distances between consecutive points."""

    total = 0.0
    for previous, current in zip(points, points[1:]):
        total += distance(previous, current)
    return total


__all__ = [
    "EARTH_RADIUS_M",
    "AREA_SCALE_M2_PER_DEG2",
    "distance",
    "segments_intersect",
    "centroid",
    "polygon_area",
    "path_length",
]
