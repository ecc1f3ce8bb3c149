"""Nominatim-compatible forward and reverse geocoding client."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import requests
from cachetools import TTLCache
from requests import Session

from .. import config
from ..errors import GeocodingError
from ..models import Coord, PlaceInfo
from .rate_limiter import RateLimiter
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

_ReverseCacheKey = Tuple[float, float]

# Address keys tried in order for each PlaceInfo field.
_STREET_KEYS = ("road", "pedestrian", "footway", "path", "square")
_CITY_KEYS = ("city", "town", "village", "municipality")
_DISTRICT_KEYS = ("city_district", "district", "suburb", "borough", "quarter")


class Geocoder(Protocol):
    """Collaborator resolving text to coordinates and coordinates to places."""

    def geocode(self, text: str) -> List[Coord]: ...

    def reverse_geocode(self, coord: Coord) -> Optional[PlaceInfo]: ...


def _first_present(address: Mapping[str, Any], keys: Tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


def place_from_payload(payload: Mapping[str, Any]) -> Optional[PlaceInfo]:
    """Normalise a ``/reverse`` response into :class:`PlaceInfo`."""

    if not payload or "error" in payload:
        return None
    address = payload.get("address") or {}
    if not isinstance(address, Mapping):
        address = {}
    name = payload.get("name") or None
    place = PlaceInfo(
        street=_first_present(address, _STREET_KEYS),
        city=_first_present(address, _CITY_KEYS),
        district=_first_present(address, _DISTRICT_KEYS),
        name=str(name) if name else None,
    )
    if not any((place.street, place.city, place.district, place.name)):
        return None
    return place


class NominatimGeocoder:
    """Geocoder backed by a Nominatim-style HTTP API.

    Requests share one pooled session and one rate limiter. Reverse lookups
    are cached by rounded coordinate since captures cluster around the same
    streets. Every transport or payload failure is raised as
    :class:`GeocodingError`.
    """

    def __init__(
        self,
        base_url: str = config.GEOCODER_BASE_URL,
        *,
        session: Session | None = None,
        limiter: RateLimiter | None = None,
        timeout: float = config.REQUEST_TIMEOUT,
        search_limit: int = config.GEOCODER_SEARCH_LIMIT,
        cache_size: int = config.REVERSE_GEOCODE_CACHE_SIZE,
        cache_ttl: int = config.REVERSE_GEOCODE_CACHE_TTL_SECONDS,
        offline: bool = config.GEOCODER_OFFLINE_MODE,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._session = session or get_default_session()
        self._limiter = limiter or RateLimiter()
        self._timeout = timeout
        self._search_limit = search_limit
        self._offline = offline
        self._reverse_cache: TTLCache[_ReverseCacheKey, Optional[PlaceInfo]] = (
            TTLCache(maxsize=max(1, cache_size), ttl=cache_ttl)
        )
        self._cache_lock = RLock()

    def geocode(self, text: str) -> List[Coord]:
        query = text.strip()
        if not query:
            return []
        payload = self._get(
            "/search",
            {"q": query, "format": "jsonv2", "limit": self._search_limit},
        )
        if not isinstance(payload, list):
            raise GeocodingError(f"Unexpected search payload: {type(payload)!r}")
        results: List[Coord] = []
        for item in payload:
            try:
                results.append(Coord(float(item["lat"]), float(item["lon"])))
            except (KeyError, TypeError, ValueError):
                LOGGER.debug("Skipping malformed search hit: %s", item)
        LOGGER.debug("Geocoded %r -> %d hits", query, len(results))
        return results

    def reverse_geocode(self, coord: Coord) -> Optional[PlaceInfo]:
        key = self._cache_key(coord)
        with self._cache_lock:
            if key in self._reverse_cache:
                return self._reverse_cache[key]
        payload = self._get(
            "/reverse",
            {
                "lat": coord.latitude,
                "lon": coord.longitude,
                "format": "jsonv2",
                "addressdetails": 1,
            },
        )
        if not isinstance(payload, Mapping):
            raise GeocodingError(f"Unexpected reverse payload: {type(payload)!r}")
        place = place_from_payload(payload)
        with self._cache_lock:
            self._reverse_cache[key] = place
        return place

    def _cache_key(self, coord: Coord) -> _ReverseCacheKey:
        precision = config.REVERSE_GEOCODE_CACHE_PRECISION
        return (round(coord.latitude, precision), round(coord.longitude, precision))

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        if self._offline:
            raise GeocodingError("Geocoder is in offline mode")
        url = f"{self._base_url}{path}"
        with self._limiter.slot() as slot:
            try:
                LOGGER.debug("GET %s params=%s", url, params)
                response = self._session.get(url, params=params, timeout=self._timeout)
                slot.record(response.status_code, response.headers)
                response.raise_for_status()
                return response.json()
            except requests.RequestException as exc:
                raise GeocodingError(
                    f"Geocoding request to {path} failed: {exc}"
                ) from exc
            except ValueError as exc:
                raise GeocodingError(f"Geocoder returned invalid JSON: {exc}") from exc


__all__ = ["Geocoder", "NominatimGeocoder", "place_from_payload"]
