"""Decide the category, name and reward of an accepted loop."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable, Iterable, Optional

from .config import (
    BASE_REWARD,
    CITY_AREA_THRESHOLD_M2,
    CITY_BONUS,
    CITY_FALLBACK_NAME,
    STREET_BONUS,
    STREET_FALLBACK_NAME,
    TARGET_BONUS,
)
from .errors import GeocodingError
from .geocoding import Geocoder
from .mission import MissionTargeting
from .models import CaptureOutcome, PendingCapture, PlaceInfo, Territory

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RewardTable:
    base: int = BASE_REWARD
    target_bonus: int = TARGET_BONUS
    city_bonus: int = CITY_BONUS
    street_bonus: int = STREET_BONUS
    city_threshold_m2: float = CITY_AREA_THRESHOLD_M2


def latest_numeric_id(ids: Iterable[str]) -> int:
    """Largest all-digit id in ``ids``, or 0 when there is none."""

    return max((int(value) for value in ids if value.isdigit()), default=0)


class TerritoryIdFactory:
    """Millisecond timestamps, bumped when two captures share a millisecond.

    Ids never repeat or go backwards, even when the clock does. Pass the
    largest id already in use as ``last_issued`` when resuming a game.
    """

    def __init__(
        self, clock: Callable[[], float] = time.time, last_issued: int = 0
    ) -> None:
        self._clock = clock
        self._last = max(0, last_issued)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            candidate = int(self._clock() * 1000)
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
        return str(candidate)


class TerritoryClassifier:
    """Turns a pending capture into a territory proposal and its reward.

    First match wins: a capture centred inside the active target zone is a
    ``landmark``; otherwise the area picks ``city`` or ``street`` and the
    reverse geocoder supplies the name. A failed lookup only costs the name.
    """

    def __init__(
        self,
        mission: MissionTargeting,
        geocoder: Geocoder | None = None,
        *,
        rewards: RewardTable | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._mission = mission
        self._geocoder = geocoder
        self.rewards = rewards or RewardTable()
        self._id_factory = id_factory or TerritoryIdFactory()

    def classify(self, pending: PendingCapture) -> CaptureOutcome:
        rewards = self.rewards
        zone = self._mission.claim_if_hit(pending.centroid)
        if zone is not None:
            territory = self._territory(pending, zone.name, "landmark")
            return CaptureOutcome(
                territory=territory,
                reward=rewards.base + rewards.target_bonus,
                target_hit=True,
            )

        place = self._lookup(pending)
        if pending.area > rewards.city_threshold_m2:
            name = _city_name(place)
            territory = self._territory(pending, name, "city")
            bonus = rewards.city_bonus
        else:
            name = _street_name(place)
            territory = self._territory(pending, name, "street")
            bonus = rewards.street_bonus
        return CaptureOutcome(territory=territory, reward=rewards.base + bonus)

    def _lookup(self, pending: PendingCapture) -> Optional[PlaceInfo]:
        if self._geocoder is None:
            return None
        try:
            return self._geocoder.reverse_geocode(pending.centroid)
        except GeocodingError as exc:
            LOGGER.warning(
                "Reverse geocoding failed at %s; using fallback name: %s",
                pending.centroid,
                exc,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "Unexpected reverse geocoding error at %s: %s",
                pending.centroid,
                exc,
                exc_info=True,
            )
        return None

    def _territory(
        self, pending: PendingCapture, name: str, category: str
    ) -> Territory:
        return Territory(
            id=self._id_factory(),
            coords=pending.ring,
            name=name,
            category=category,  # type: ignore[arg-type]
            area=int(pending.area),
            captured_at=datetime.now(timezone.utc),
        )


def _city_name(place: Optional[PlaceInfo]) -> str:
    if place is None:
        return CITY_FALLBACK_NAME
    return place.city or place.district or CITY_FALLBACK_NAME


def _street_name(place: Optional[PlaceInfo]) -> str:
    if place is None:
        return STREET_FALLBACK_NAME
    return place.street or place.name or STREET_FALLBACK_NAME


__all__ = [
    "RewardTable",
    "TerritoryClassifier",
    "TerritoryIdFactory",
    "latest_numeric_id",
]
