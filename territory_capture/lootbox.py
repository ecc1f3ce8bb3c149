"""Distance-triggered mystery crates."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
from typing import Optional

from .config import (
    LOOTBOX_CHANCE,
    LOOTBOX_MAX_REWARD,
    LOOTBOX_MIN_REWARD,
    LOOTBOX_PICKUP_RADIUS_M,
    LOOTBOX_STEP_M,
)
from .geo_math import distance
from .models import Coord, Lootbox

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LootboxEvent:
    spawned: Optional[Lootbox] = None
    collected: Optional[Lootbox] = None


class LootboxTracker:
    """Accumulates travelled distance and rolls for a crate every step.

    Only one crate exists at a time; a new spawn replaces an uncollected one.
    A crate is collected by the first later fix within the pickup radius.
    """

    def __init__(
        self,
        *,
        step_m: float = LOOTBOX_STEP_M,
        chance: float = LOOTBOX_CHANCE,
        min_reward: int = LOOTBOX_MIN_REWARD,
        max_reward: int = LOOTBOX_MAX_REWARD,
        pickup_radius_m: float = LOOTBOX_PICKUP_RADIUS_M,
        rng: random.Random | None = None,
    ) -> None:
        if step_m <= 0:
            raise ValueError("step_m must be positive")
        if not 0.0 <= chance <= 1.0:
            raise ValueError("chance must be within [0, 1]")
        if min_reward > max_reward:
            raise ValueError("min_reward must not exceed max_reward")
        self._step_m = step_m
        self._chance = chance
        self._min_reward = min_reward
        self._max_reward = max_reward
        self._pickup_radius_m = pickup_radius_m
        # Gameplay randomness only; not used for security-sensitive logic.
        self._rng = rng or random.Random()  # nosec B311
        self._previous: Optional[Coord] = None
        self.accumulated_m = 0.0
        self.lootbox: Optional[Lootbox] = None

    def seed(self, position: Coord) -> None:
        """Set the starting position without counting any distance."""

        self._previous = position

    def observe(self, fix: Coord) -> LootboxEvent:
        collected = None
        if self.lootbox is not None and (
            distance(fix, self.lootbox.coord) < self._pickup_radius_m
        ):
            collected, self.lootbox = self.lootbox, None
            LOGGER.info("Lootbox collected: %d", collected.amount)

        spawned = None
        if self._previous is not None:
            self.accumulated_m += distance(self._previous, fix)
            if self.accumulated_m > self._step_m:
                self.accumulated_m = 0.0
                if self._rng.random() < self._chance:
                    amount = self._rng.randint(self._min_reward, self._max_reward)
                    spawned = self.lootbox = Lootbox(coord=fix, amount=amount)
                    LOGGER.info("Lootbox spawned at %s worth %d", fix, amount)
        self._previous = fix
        return LootboxEvent(spawned=spawned, collected=collected)


__all__ = ["LootboxEvent", "LootboxTracker"]
