"""Player profile summary built from an engine snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import EngineSnapshot, Territory


@dataclass(frozen=True, slots=True)
class ProfileSummary:
    cash: int
    landmarks: Tuple[Territory, ...]
    cities: Tuple[Territory, ...]
    streets: Tuple[Territory, ...]
    target_name: Optional[str]
    target_distance_m: Optional[int]

    @property
    def total_area_m2(self) -> int:
        return sum(t.area for t in self.landmarks + self.cities + self.streets)

    def lines(self) -> List[str]:
        """Plain-text rendering used by the CLI."""

        out = [f"WAR CHEST: ${self.cash}"]
        if self.target_name is None:
            out.append("CURRENT MISSION: None Set")
        elif self.target_distance_m is None:
            out.append(f"CURRENT MISSION: {self.target_name}")
        else:
            out.append(
                f"CURRENT MISSION: {self.target_name} "
                f"(Distance: {self.target_distance_m} meters away)"
            )
        for title, group in (
            ("LANDMARKS", self.landmarks),
            ("CITIES", self.cities),
            ("STREETS", self.streets),
        ):
            out.append(f"{title} ({len(group)})")
            out.extend(_row(t) for t in group)
        out.append(f"TOTAL AREA: {self.total_area_m2} m2")
        return out


def _row(territory: Territory) -> str:
    star = " *" if territory.level > 1 else ""
    building = f" +{territory.building}" if territory.building else ""
    return f"  {territory.name}{star}{building} [{territory.id}]"


def build_profile(snapshot: EngineSnapshot) -> ProfileSummary:
    def _of(category: str) -> Tuple[Territory, ...]:
        return tuple(t for t in snapshot.territories if t.category == category)

    target = snapshot.target
    target_distance = (
        int(snapshot.target_distance_m)
        if snapshot.target_distance_m is not None
        else None
    )
    return ProfileSummary(
        cash=snapshot.cash,
        landmarks=_of("landmark"),
        cities=_of("city"),
        streets=_of("street"),
        target_name=target.name if target is not None else None,
        target_distance_m=target_distance,
    )


__all__ = ["ProfileSummary", "build_profile"]
