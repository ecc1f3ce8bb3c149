"""Capture session: feeds fixes through detection, classification and commit.

Fix handling is serialised. Loop detection and the path reset happen
synchronously on the fix thread; classification (which may wait on reverse
geocoding) runs on a worker pool and ends in an independent ledger commit, so
slow lookups never hold up the next fix.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
import logging
import random
import threading
from typing import List, Optional, Set

from . import config
from .classifier import (
    RewardTable,
    TerritoryClassifier,
    TerritoryIdFactory,
    latest_numeric_id,
)
from .errors import ActionRejectedError, GeocodingError, LocationUnavailableError
from .geocoding import Geocoder
from .ledger import CaptureLedger, load_ledger
from .location import LocationSource, Subscription
from .loop_extractor import LoopExtractor
from .lootbox import LootboxTracker
from .mission import MissionTargeting
from .models import (
    ActionResult,
    CaptureOutcome,
    Coord,
    EngineSnapshot,
    PendingCapture,
    SearchResult,
    TargetZone,
)
from .notifications import LoggingNotifier, Notifier
from .path_buffer import PathBuffer
from .persistence import DebouncedSaver, JsonTerritoryStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineConfig:
    path_max_points: int = config.PATH_MAX_POINTS
    path_tail_points: int = config.PATH_TAIL_POINTS
    scan_window: int = config.LOOP_SCAN_WINDOW
    min_loop_area_m2: float = config.MIN_LOOP_AREA_M2
    rewards: RewardTable = field(default_factory=RewardTable)
    target_radius_m: float = config.TARGET_RADIUS_M
    search_max_results: int = config.SEARCH_MAX_RESULTS
    upgrade_cost: int = config.UPGRADE_COST
    max_level: int = config.MAX_TERRITORY_LEVEL
    build_cost: int = config.BUILD_COST
    income_per_hour: int = config.BUILDING_INCOME_PER_HOUR
    lootbox_step_m: float = config.LOOTBOX_STEP_M
    lootbox_chance: float = config.LOOTBOX_CHANCE
    lootbox_min_reward: int = config.LOOTBOX_MIN_REWARD
    lootbox_max_reward: int = config.LOOTBOX_MAX_REWARD
    lootbox_pickup_radius_m: float = config.LOOTBOX_PICKUP_RADIUS_M
    classifier_workers: int = config.CLASSIFIER_MAX_WORKERS
    starting_cash: int = config.STARTING_CASH
    storage_key: str = config.STORAGE_KEY
    save_debounce_seconds: float = config.SAVE_DEBOUNCE_SECONDS


class CaptureEngine:
    """Standalone game engine; renderers only read :meth:`snapshot`."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        geocoder: Geocoder | None = None,
        store: JsonTerritoryStore | None = None,
        ledger: CaptureLedger | None = None,
        notifier: Notifier | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = cfg = config or EngineConfig()
        self._notify_sink = notifier or LoggingNotifier()
        self._path = PathBuffer(cfg.path_max_points, cfg.path_tail_points, cfg.scan_window)
        self._extractor = LoopExtractor(cfg.min_loop_area_m2)
        self.mission = MissionTargeting(
            geocoder,
            default_radius_m=cfg.target_radius_m,
            max_results=cfg.search_max_results,
        )
        self._lootbox = LootboxTracker(
            step_m=cfg.lootbox_step_m,
            chance=cfg.lootbox_chance,
            min_reward=cfg.lootbox_min_reward,
            max_reward=cfg.lootbox_max_reward,
            pickup_radius_m=cfg.lootbox_pickup_radius_m,
            rng=rng,
        )

        if ledger is None:
            ledger = (
                load_ledger(store, cfg.storage_key, cfg.starting_cash)
                if store is not None
                else CaptureLedger(cash=cfg.starting_cash)
            )
        self.ledger = ledger
        self._classifier = TerritoryClassifier(
            self.mission,
            geocoder,
            rewards=cfg.rewards,
            id_factory=TerritoryIdFactory(
                last_issued=latest_numeric_id(t.id for t in ledger.territories)
            ),
        )
        self._saver: DebouncedSaver | None = None
        if store is not None:
            self._saver = DebouncedSaver(
                store,
                cfg.storage_key,
                lambda: self.ledger.snapshot().to_dict(),
                cfg.save_debounce_seconds,
            )
            self.ledger.set_listener(self._saver.schedule)

        self._fix_lock = threading.Lock()
        self._futures_lock = threading.Lock()
        self._futures: Set[Future[None]] = set()
        self._executor: ThreadPoolExecutor | None = None
        self._subscription: Subscription | None = None
        self._position: Optional[Coord] = None
        self._stopped = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, source: LocationSource) -> bool:
        """Seed the session from ``source`` and subscribe to its fixes.

        Returns False (engine stays idle) when location is unavailable.
        """

        if self._subscription is not None and self._subscription.active:
            return True
        self._stopped = False
        try:
            position = source.current_position()
            with self._fix_lock:
                self._position = position
                self._lootbox.seed(position)
            self._subscription = source.subscribe(self.process_fix)
        except LocationUnavailableError as exc:
            LOGGER.warning("Tracking unavailable: %s", exc)
            self._notify(f"Location unavailable: {exc}")
            return False
        LOGGER.info("Tracking started at %s", position)
        return True

    def stop(self) -> None:
        """Stop accepting fixes, let pending captures commit, flush the save."""

        with self._fix_lock:
            self._stopped = True
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.remove()
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        if self._saver is not None:
            self._saver.flush()
        LOGGER.info("Tracking stopped")

    def __enter__(self) -> "CaptureEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def tracking(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def wait_for_source(self, timeout: float | None = None) -> bool:
        """Block until the current subscription delivers its last fix."""

        if self._subscription is None:
            return True
        return self._subscription.wait(timeout)

    def wait_for_captures(self, timeout: float | None = None) -> bool:
        """Block until every pending classification has committed."""

        with self._futures_lock:
            pending = set(self._futures)
        if not pending:
            return True
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    # ------------------------------------------------------------------
    # Fix pipeline
    # ------------------------------------------------------------------
    def process_fix(self, fix: Coord) -> Optional[PendingCapture]:
        """Handle one position report; returns the capture it queued, if any."""

        with self._fix_lock:
            if self._stopped:
                return None
            self._handle_lootbox(fix)
            self._position = fix
            ring = self._path.append(fix).ring
            if ring is None:
                return None
            # Every detected loop consumes the path, accepted or not.
            self._path.reset(fix)
            pending = self._extractor.extract(ring)
            if pending is None:
                return None
            self._submit(pending)
            return pending

    def _handle_lootbox(self, fix: Coord) -> None:
        event = self._lootbox.observe(fix)
        if event.collected is not None:
            self.ledger.credit(event.collected.amount, reason="lootbox")
            self._notify(f"LOOT SECURED: You found ${event.collected.amount}!")
        if event.spawned is not None:
            self._notify("MYSTERY CRATE FOUND! You stumbled upon a hidden stash nearby!")

    def _submit(self, pending: PendingCapture) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, self.config.classifier_workers),
                thread_name_prefix="capture-classifier",
            )
        future = self._executor.submit(self._resolve, pending)
        with self._futures_lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future[None]) -> None:
        with self._futures_lock:
            self._futures.discard(future)

    def _resolve(self, pending: PendingCapture) -> None:
        try:
            outcome = self._classifier.classify(pending)
            self.commit_capture(outcome)
        except Exception as exc:  # pragma: no cover
            LOGGER.error("Capture at %s failed: %s", pending.centroid, exc, exc_info=True)
            self._notify(f"Capture failed: {exc}")

    def commit_capture(self, outcome: CaptureOutcome) -> None:
        territory = outcome.territory
        self.ledger.commit(territory, outcome.reward)
        if outcome.target_hit:
            self._notify(
                f"TARGET CONQUERED: You captured {territory.name}! "
                f"Bonus: ${self.config.rewards.target_bonus}"
            )
        self._notify(f"Captured: {territory.name} (+${outcome.reward})")

    # ------------------------------------------------------------------
    # Missions
    # ------------------------------------------------------------------
    def set_target(
        self, coord: Coord, radius_m: float | None = None, name: str = "Target"
    ) -> TargetZone:
        zone = self.mission.set_target(coord, radius_m, name)
        self._notify(f"Target Set: {zone.name}")
        return zone

    def clear_target(self) -> Optional[TargetZone]:
        return self.mission.clear_target()

    def search(self, query: str, origin: Coord | None = None) -> List[SearchResult]:
        """Closest-first search hits around ``origin`` (default: last fix)."""

        try:
            results = self.mission.search(query, origin or self._position)
        except GeocodingError as exc:
            LOGGER.warning("Search %r failed: %s", query, exc)
            self._notify("Error: search failed. Check internet.")
            return []
        if not results:
            self._notify("No Results: Try a more specific name.")
        return results

    def select_search_result(self, query: str, result: SearchResult) -> TargetZone:
        zone = self.mission.select_result(query, result)
        self._notify(f"Target Set: {int(result.distance_m)}m away")
        return zone

    # ------------------------------------------------------------------
    # Economy actions
    # ------------------------------------------------------------------
    def upgrade(self, territory_id: str) -> ActionResult:
        try:
            territory = self.ledger.upgrade(
                territory_id, self.config.upgrade_cost, self.config.max_level
            )
        except ActionRejectedError as exc:
            return self._rejected(exc)
        message = f"Upgraded {territory.name}!"
        self._notify(message)
        return ActionResult(accepted=True, message=message, territory=territory)

    def build(
        self, territory_id: str, structure: str, cost: int | None = None
    ) -> ActionResult:
        price = self.config.build_cost if cost is None else cost
        try:
            territory = self.ledger.build(territory_id, structure, price)
        except ActionRejectedError as exc:
            return self._rejected(exc)
        message = f"Built {structure} on {territory.name}!"
        self._notify(message)
        return ActionResult(accepted=True, message=message, territory=territory)

    def collect_income(self, now: datetime | None = None) -> int:
        income = self.ledger.collect_income(now, self.config.income_per_hour)
        if income:
            self._notify(f"Collected ${income} in building income")
        return income

    def _rejected(self, exc: ActionRejectedError) -> ActionResult:
        LOGGER.info("Action rejected: %s", exc)
        self._notify(str(exc))
        return ActionResult(accepted=False, message=str(exc))

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    def snapshot(self) -> EngineSnapshot:
        with self._fix_lock:
            path = self._path.points
            position = self._position
            lootbox = self._lootbox.lootbox
        ledger = self.ledger.snapshot()
        with self._futures_lock:
            pending = len(self._futures)
        return EngineSnapshot(
            territories=ledger.territories,
            cash=ledger.cash,
            path=path,
            position=position,
            target=self.mission.target,
            lootbox=lootbox,
            pending_captures=pending,
            tracking=self.tracking,
            target_distance_m=self.mission.distance_to_target(position),
        )

    def _notify(self, message: str) -> None:
        try:
            self._notify_sink(message)
        except Exception as exc:  # pragma: no cover
            LOGGER.warning("Notifier failed for %r: %s", message, exc)


__all__ = ["CaptureEngine", "EngineConfig"]
