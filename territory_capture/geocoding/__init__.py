"""Geocoding collaborator: HTTP client, pooled session and request pacing."""

from .client import Geocoder, NominatimGeocoder, place_from_payload
from .rate_limiter import RateLimiter, RequestSlot
from .session import create_default_session, get_default_session

__all__ = [
    "Geocoder",
    "NominatimGeocoder",
    "place_from_payload",
    "RateLimiter",
    "RequestSlot",
    "create_default_session",
    "get_default_session",
]
