"""Accept or reject loop candidates before classification."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import MIN_LOOP_AREA_M2
from .geo_math import centroid, polygon_area
from .models import Coord, PendingCapture

LOGGER = logging.getLogger(__name__)


class LoopExtractor:
    """Filters out near-zero-area loops produced by GPS jitter."""

    def __init__(self, min_area_m2: float = MIN_LOOP_AREA_M2) -> None:
        if min_area_m2 < 0:
            raise ValueError("min_area_m2 must be >= 0")
        self.min_area_m2 = min_area_m2

    def extract(self, ring: Sequence[Coord]) -> Optional[PendingCapture]:
        """Return a pending capture for ``ring`` or ``None`` when too small."""

        if len(ring) < 4:
            LOGGER.debug("Rejected ring with only %d points", len(ring))
            return None
        area = polygon_area(ring)
        if area < self.min_area_m2:
            LOGGER.debug(
                "Rejected loop area=%.1fm2 (< %.1fm2)", area, self.min_area_m2
            )
            return None
        return PendingCapture(ring=tuple(ring), area=area, centroid=centroid(ring))


__all__ = ["LoopExtractor"]
