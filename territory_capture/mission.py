"""Target zone bookkeeping and place search."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .config import (
    SEARCH_MAX_RESULTS,
    SEARCH_UNKNOWN_DISTANCE_M,
    TARGET_RADIUS_M,
)
from .errors import GeocodingError
from .geo_math import distance
from .geocoding import Geocoder
from .models import Coord, SearchResult, TargetZone

LOGGER = logging.getLogger(__name__)


def _result_label(geocoder: Geocoder, coord: Coord) -> str:
    try:
        place = geocoder.reverse_geocode(coord)
    except GeocodingError as exc:
        LOGGER.debug("Reverse lookup for search hit %s failed: %s", coord, exc)
        return "Unknown Location"
    if place is None:
        return "Unknown Location"
    return place.name or place.street or place.city or "Location"


class MissionTargeting:
    """Holds at most one target zone.

    Selecting a new target silently abandons the previous one. A target is
    consumed exactly once, by the capture whose centroid lands inside it.
    """

    def __init__(
        self,
        geocoder: Geocoder | None = None,
        *,
        default_radius_m: float = TARGET_RADIUS_M,
        max_results: int = SEARCH_MAX_RESULTS,
    ) -> None:
        self._geocoder = geocoder
        self._default_radius_m = default_radius_m
        self._max_results = max_results
        self._target: Optional[TargetZone] = None
        self._lock = threading.Lock()

    @property
    def target(self) -> Optional[TargetZone]:
        with self._lock:
            return self._target

    def set_target(
        self, coord: Coord, radius_m: float | None = None, name: str = "Target"
    ) -> TargetZone:
        radius = self._default_radius_m if radius_m is None else radius_m
        if radius <= 0:
            raise ValueError("radius_m must be positive")
        zone = TargetZone(coord.latitude, coord.longitude, radius, name)
        with self._lock:
            previous = self._target
            self._target = zone
        if previous is not None:
            LOGGER.info("Target %r replaced by %r", previous.name, name)
        else:
            LOGGER.info("Target set: %r radius=%.0fm", name, radius)
        return zone

    def clear_target(self) -> Optional[TargetZone]:
        with self._lock:
            previous, self._target = self._target, None
        return previous

    def claim_if_hit(self, centroid: Coord) -> Optional[TargetZone]:
        """Clear and return the target when ``centroid`` lies inside it."""

        with self._lock:
            zone = self._target
            if zone is None:
                return None
            if distance(centroid, zone.center) >= zone.radius_m:
                return None
            self._target = None
        LOGGER.info("Target %r captured", zone.name)
        return zone

    def distance_to_target(self, position: Coord | None) -> Optional[float]:
        zone = self.target
        if zone is None or position is None:
            return None
        return distance(position, zone.center)

    def search(self, query: str, origin: Coord | None = None) -> List[SearchResult]:
        """Geocode ``query`` and return the closest hits first.

        Returns an empty list when nothing matches. Lookup failures propagate
        as :class:`GeocodingError` and leave the current target untouched.
        """

        if self._geocoder is None:
            raise GeocodingError("No geocoder configured")
        text = query.strip()
        if not text:
            return []
        hits = self._geocoder.geocode(text)
        if not hits:
            LOGGER.info("Search %r returned no results", text)
            return []
        enriched = [
            SearchResult(
                coord=hit,
                distance_m=(
                    distance(origin, hit)
                    if origin is not None
                    else SEARCH_UNKNOWN_DISTANCE_M
                ),
                label=_result_label(self._geocoder, hit),
            )
            for hit in hits
        ]
        enriched.sort(key=lambda result: result.distance_m)
        return enriched[: self._max_results]

    def select_result(self, query: str, result: SearchResult) -> TargetZone:
        """Turn a search hit into the active target, named after the query."""

        return self.set_target(result.coord, name=f"{query.strip()} ({result.label})")


__all__ = ["MissionTargeting"]
