"""Authoritative in-memory record of territories and cash."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
import logging
import threading
from typing import Callable, Dict, List, Optional

from .config import (
    BUILDING_INCOME_PER_HOUR,
    MAX_TERRITORY_LEVEL,
    STARTING_CASH,
    UPGRADE_COST,
)
from .errors import (
    InsufficientFundsError,
    MaxLevelError,
    PersistenceError,
    SlotOccupiedError,
    TerritoryNotFoundError,
)
from .models import LedgerSnapshot, Territory
from .persistence import JsonTerritoryStore

LOGGER = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


class CaptureLedger:
    """Territory collection plus cash balance.

    Every mutation is applied under one lock and then reported to the change
    listener (the debounced saver). Commits only append and add, so captures
    resolved in any order end in the same state. Purchases are checked and
    applied atomically; a rejected purchase changes nothing.
    """

    def __init__(
        self,
        territories: List[Territory] | None = None,
        cash: int = 0,
        last_collected_at: Optional[datetime] = None,
        on_change: ChangeListener | None = None,
    ) -> None:
        if cash < 0:
            raise ValueError("cash must be >= 0")
        self._territories: List[Territory] = list(territories or [])
        self._index: Dict[str, Territory] = {t.id: t for t in self._territories}
        self._cash = cash
        self._last_collected_at = last_collected_at
        self._on_change = on_change
        self._lock = threading.RLock()

    @classmethod
    def from_snapshot(
        cls, snapshot: LedgerSnapshot, on_change: ChangeListener | None = None
    ) -> "CaptureLedger":
        return cls(
            territories=list(snapshot.territories),
            cash=snapshot.cash,
            last_collected_at=snapshot.last_collected_at,
            on_change=on_change,
        )

    def set_listener(self, on_change: ChangeListener | None) -> None:
        self._on_change = on_change

    @property
    def cash(self) -> int:
        with self._lock:
            return self._cash

    @property
    def territories(self) -> tuple[Territory, ...]:
        with self._lock:
            return tuple(self._territories)

    def get(self, territory_id: str) -> Territory:
        with self._lock:
            territory = self._index.get(territory_id)
        if territory is None:
            raise TerritoryNotFoundError(f"No territory with id {territory_id!r}")
        return territory

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                territories=tuple(self._territories),
                cash=self._cash,
                last_collected_at=self._last_collected_at,
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def commit(self, territory: Territory, reward: int) -> None:
        """Append ``territory`` and credit ``reward`` as one step."""

        if reward < 0:
            raise ValueError("reward must be >= 0")
        with self._lock:
            if territory.id in self._index:
                raise ValueError(f"Territory {territory.id!r} already committed")
            self._territories.append(territory)
            self._index[territory.id] = territory
            self._cash += reward
            cash = self._cash
        LOGGER.info(
            "Captured %s '%s' area=%dm2 reward=%d cash=%d",
            territory.category,
            territory.name,
            territory.area,
            reward,
            cash,
        )
        self._changed()

    def credit(self, amount: int, reason: str = "credit") -> int:
        if amount < 0:
            raise ValueError("amount must be >= 0")
        with self._lock:
            self._cash += amount
            cash = self._cash
        LOGGER.info("Credited %d (%s) cash=%d", amount, reason, cash)
        self._changed()
        return cash

    def upgrade(
        self,
        territory_id: str,
        cost: int = UPGRADE_COST,
        max_level: int = MAX_TERRITORY_LEVEL,
    ) -> Territory:
        with self._lock:
            territory = self.get(territory_id)
            if territory.level >= max_level:
                raise MaxLevelError(f"{territory.name} is already max level")
            self._debit(cost)
            territory = self._swap(replace(territory, level=territory.level + 1))
        LOGGER.info("Upgraded '%s' to level %d", territory.name, territory.level)
        self._changed()
        return territory

    def build(self, territory_id: str, structure: str, cost: int) -> Territory:
        if not structure:
            raise ValueError("structure must be a non-empty name")
        with self._lock:
            territory = self.get(territory_id)
            if territory.building is not None:
                raise SlotOccupiedError(
                    f"{territory.name} already has a {territory.building}"
                )
            self._debit(cost)
            territory = self._swap(replace(territory, building=structure))
        LOGGER.info("Built %s on '%s'", structure, territory.name)
        self._changed()
        return territory

    def collect_income(
        self,
        now: datetime | None = None,
        rate_per_hour: int = BUILDING_INCOME_PER_HOUR,
    ) -> int:
        """Pay out building income for each whole hour since the last collection.

        The first call only starts the clock. Partial hours carry over.
        """

        now = now or datetime.now(timezone.utc)
        with self._lock:
            last = self._last_collected_at
            if last is None:
                self._last_collected_at = now
                income = 0
            else:
                hours = int((now - last).total_seconds() // 3600)
                if hours <= 0:
                    return 0
                per_hour = sum(
                    rate_per_hour * t.level
                    for t in self._territories
                    if t.building is not None
                )
                income = hours * per_hour
                self._cash += income
                self._last_collected_at = last + timedelta(hours=hours)
        LOGGER.info("Collected %d income", income)
        self._changed()
        return income

    def _swap(self, updated: Territory) -> Territory:
        position = next(
            index
            for index, current in enumerate(self._territories)
            if current.id == updated.id
        )
        self._territories[position] = updated
        self._index[updated.id] = updated
        return updated

    def _debit(self, cost: int) -> None:
        if cost < 0:
            raise ValueError("cost must be >= 0")
        if self._cash < cost:
            raise InsufficientFundsError(cost, self._cash)
        self._cash -= cost

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception as exc:  # pragma: no cover
            LOGGER.error("Ledger change listener failed: %s", exc, exc_info=True)


def load_ledger(
    store: JsonTerritoryStore,
    key: str,
    starting_cash: int = STARTING_CASH,
) -> CaptureLedger:
    """Rebuild the ledger from the stored snapshot.

    A missing snapshot starts a new game with ``starting_cash``; an unreadable
    one starts empty with zero cash.
    """

    try:
        payload = store.load(key)
    except PersistenceError as exc:
        LOGGER.error("Failed to load snapshot key=%s: %s", key, exc)
        return CaptureLedger(cash=0)
    if payload is None:
        LOGGER.info("No snapshot for key=%s; starting new game", key)
        return CaptureLedger(cash=starting_cash)
    try:
        snapshot = LedgerSnapshot.from_dict(payload)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        LOGGER.error("Snapshot key=%s is malformed: %s", key, exc)
        return CaptureLedger(cash=0)
    LOGGER.info(
        "Loaded %d territories and %d cash from key=%s",
        len(snapshot.territories),
        snapshot.cash,
        key,
    )
    return CaptureLedger.from_snapshot(snapshot)


__all__ = ["CaptureLedger", "load_ledger"]
