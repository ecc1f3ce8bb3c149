"""Bounded buffer of recent fixes with incremental self-intersection checks."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Tuple

from .config import LOOP_SCAN_WINDOW, PATH_MAX_POINTS, PATH_TAIL_POINTS
from .geo_math import segments_intersect
from .models import Coord, Ring

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppendResult:
    """Outcome of :meth:`PathBuffer.append`.

    ``ring`` is the closed loop (first point repeated at the end) when the
    newest segment crossed an earlier one, otherwise ``None``.
    """

    ring: Optional[Ring] = None
    crossing_index: Optional[int] = None

    @property
    def loop_detected(self) -> bool:
        return self.ring is not None


NO_LOOP = AppendResult()


class PathBuffer:
    """Chronological fixes, pruned to a recent suffix once the cap is reached."""

    def __init__(
        self,
        max_points: int = PATH_MAX_POINTS,
        tail_points: int = PATH_TAIL_POINTS,
        scan_window: int = LOOP_SCAN_WINDOW,
    ) -> None:
        if tail_points < 1 or max_points < 2:
            raise ValueError("max_points must be >= 2 and tail_points >= 1")
        if tail_points >= max_points:
            raise ValueError("tail_points must be smaller than max_points")
        if scan_window < 2:
            raise ValueError("scan_window must be >= 2")
        self._max_points = max_points
        self._tail_points = tail_points
        self._scan_window = scan_window
        self._path: List[Coord] = []

    def __len__(self) -> int:
        return len(self._path)

    @property
    def points(self) -> Tuple[Coord, ...]:
        return tuple(self._path)

    @property
    def last(self) -> Optional[Coord]:
        return self._path[-1] if self._path else None

    def reset(self, fix: Optional[Coord] = None) -> None:
        """Restart accumulation, optionally seeded with ``fix``."""

        self._path = [fix] if fix is not None else []

    def append(self, fix: Coord) -> AppendResult:
        """Add ``fix`` and report the loop it closes, if any.

        The scan covers segments starting in the trailing window and stops at
        the first (oldest) crossing, which yields the largest loop reachable
        within the window.
        """

        if len(self._path) >= self._max_points:
            self._path = self._path[-self._tail_points :]
            LOGGER.debug("Path pruned to the last %d fixes", len(self._path))
        self._path.append(fix)

        count = len(self._path)
        if count < 4:
            return NO_LOOP

        previous = self._path[-2]
        for index in range(max(0, count - self._scan_window), count - 2):
            start = self._path[index]
            end = self._path[index + 1]
            if segments_intersect(previous, fix, start, end):
                loop = self._path[index:]
                ring = tuple(loop) + (loop[0],)
                LOGGER.debug(
                    "Loop detected at index %d (%d ring points)", index, len(ring)
                )
                return AppendResult(ring=ring, crossing_index=index)
        return NO_LOOP


__all__ = ["AppendResult", "PathBuffer", "NO_LOOP"]
