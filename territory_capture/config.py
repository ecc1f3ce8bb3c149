"""Central configuration for the territory capture engine.

Module-level constants imported by the rest of the package. Each tunable can
be overridden through an environment variable of the same name, and a local
``.env`` file is read on import.
"""

from __future__ import annotations

import os
from typing import Callable, TypeVar

from dotenv import load_dotenv

_T = TypeVar("_T")

# Nearest .env found walking upward; existing variables win.
load_dotenv()

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _env(key: str, default: _T, parse: Callable[[str], _T]) -> _T:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return parse(raw.strip())
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    return _env(key, default, float)


def _env_int(key: str, default: int) -> int:
    return _env(key, default, int)


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(raw)


def _env_bool(key: str, default: bool) -> bool:
    return _env(key, default, _parse_bool)


# ---------------------------------------------------------------------------
# Path buffer / loop detection
# ---------------------------------------------------------------------------
# Hard cap on buffered fixes. When reached, only the most recent
# PATH_TAIL_POINTS are kept.
PATH_MAX_POINTS = _env_int("PATH_MAX_POINTS", 400)
PATH_TAIL_POINTS = _env_int("PATH_TAIL_POINTS", 200)

# Only loops closed within this many trailing samples are detected.
LOOP_SCAN_WINDOW = _env_int("LOOP_SCAN_WINDOW", 50)

# Loops smaller than this (square metres) are treated as GPS jitter.
MIN_LOOP_AREA_M2 = _env_float("MIN_LOOP_AREA_M2", 50.0)


# ---------------------------------------------------------------------------
# Classification & rewards
# ---------------------------------------------------------------------------
CITY_AREA_THRESHOLD_M2 = _env_float("CITY_AREA_THRESHOLD_M2", 20000.0)

BASE_REWARD = _env_int("BASE_REWARD", 10)
TARGET_BONUS = _env_int("TARGET_BONUS", 500)
CITY_BONUS = _env_int("CITY_BONUS", 100)
STREET_BONUS = _env_int("STREET_BONUS", 20)

# Names used when reverse geocoding yields nothing usable.
CITY_FALLBACK_NAME = "City Sector"
STREET_FALLBACK_NAME = "Unnamed Road"

# Worker threads resolving pending captures (reverse geocoding).
CLASSIFIER_MAX_WORKERS = _env_int("CLASSIFIER_MAX_WORKERS", 2)


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------
TARGET_RADIUS_M = _env_float("TARGET_RADIUS_M", 150.0)
SEARCH_MAX_RESULTS = _env_int("SEARCH_MAX_RESULTS", 5)
# Distance reported for search hits when the player position is unknown.
SEARCH_UNKNOWN_DISTANCE_M = 999999.0


# ---------------------------------------------------------------------------
# Economy
# ---------------------------------------------------------------------------
# Cash granted to a brand-new session (no saved snapshot).
STARTING_CASH = _env_int("STARTING_CASH", 100)

UPGRADE_COST = _env_int("UPGRADE_COST", 100)
MAX_TERRITORY_LEVEL = _env_int("MAX_TERRITORY_LEVEL", 2)

BUILD_COST = _env_int("BUILD_COST", 200)
# Income per whole hour for each territory holding a building (times level).
BUILDING_INCOME_PER_HOUR = _env_int("BUILDING_INCOME_PER_HOUR", 5)

# Lootbox trigger.
LOOTBOX_STEP_M = _env_float("LOOTBOX_STEP_M", 50.0)
LOOTBOX_CHANCE = _env_float("LOOTBOX_CHANCE", 0.05)
LOOTBOX_MIN_REWARD = _env_int("LOOTBOX_MIN_REWARD", 10)
LOOTBOX_MAX_REWARD = _env_int("LOOTBOX_MAX_REWARD", 59)
LOOTBOX_PICKUP_RADIUS_M = _env_float("LOOTBOX_PICKUP_RADIUS_M", 20.0)


# ---------------------------------------------------------------------------
# Location input
# ---------------------------------------------------------------------------
# Fixes closer than this to the previously delivered fix are dropped.
LOCATION_MIN_SPACING_M = _env_float("LOCATION_MIN_SPACING_M", 5.0)

# Delay between replayed fixes (seconds). 0 replays as fast as possible.
REPLAY_INTERVAL_SECONDS = _env_float("REPLAY_INTERVAL_SECONDS", 0.0)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------
# Directory (absolute or relative) holding the JSON snapshots.
STORAGE_DIR = os.getenv("TERRITORY_STORAGE_DIR", "territory_data")
STORAGE_KEY = os.getenv("TERRITORY_STORAGE_KEY", "territory_polygons_v6")

# Mutations within this window collapse into a single write.
SAVE_DEBOUNCE_SECONDS = _env_float("SAVE_DEBOUNCE_SECONDS", 0.5)


# ---------------------------------------------------------------------------
# Geocoding service
# ---------------------------------------------------------------------------
# Any Nominatim-compatible endpoint works.
GEOCODER_BASE_URL = os.getenv(
    "GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org"
)
GEOCODER_USER_AGENT = os.getenv(
    "GEOCODER_USER_AGENT", "territory-capture/0.1 (+https://example.invalid)"
)
GEOCODER_SEARCH_LIMIT = _env_int("GEOCODER_SEARCH_LIMIT", 10)

# When enabled the geocoder never makes live requests and every lookup fails
# fast, which exercises the offline fallbacks.
GEOCODER_OFFLINE_MODE = _env_bool("GEOCODER_OFFLINE_MODE", False)

# Connection pool sizing for the shared geocoding session.
HTTP_POOL_CONNECTIONS = 4
HTTP_POOL_MAXSIZE = 4

# Per-request timeout (seconds).
REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 10.0)

# Rate limiter settings. Public Nominatim allows one request per second.
# RATE_LIMIT_MAX_CONCURRENT: geocoder requests allowed in flight at once.
RATE_LIMIT_MAX_CONCURRENT = 1
# RATE_LIMIT_JITTER_RANGE: extra random delay (seconds) before each request.
RATE_LIMIT_JITTER_RANGE = (0.0, 0.0)
# RATE_LIMIT_MIN_INTERVAL_SECONDS spaces consecutive requests.
RATE_LIMIT_MIN_INTERVAL_SECONDS = _env_float("RATE_LIMIT_MIN_INTERVAL_SECONDS", 1.0)
# RATE_LIMIT_THROTTLE_SECONDS is the pause applied on 429 responses.
RATE_LIMIT_THROTTLE_SECONDS = _env_float("RATE_LIMIT_THROTTLE_SECONDS", 15.0)

# Reverse geocoding results cache (keyed by rounded coordinates).
REVERSE_GEOCODE_CACHE_SIZE = _env_int("REVERSE_GEOCODE_CACHE_SIZE", 256)
REVERSE_GEOCODE_CACHE_TTL_SECONDS = _env_int("REVERSE_GEOCODE_CACHE_TTL_SECONDS", 3600)
# Decimal places kept when building cache keys (~11 m at 4 places).
REVERSE_GEOCODE_CACHE_PRECISION = 4
