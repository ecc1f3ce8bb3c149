"""Dataclasses describing fixes, territories and the economy state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

TerritoryCategory = Literal["street", "landmark", "city", "unknown"]
TERRITORY_CATEGORIES: Tuple[str, ...] = ("street", "landmark", "city", "unknown")


@dataclass(frozen=True, slots=True)
class Coord:
    """A single latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Coord":
        return cls(float(payload["latitude"]), float(payload["longitude"]))


# A device position report is just a coordinate.
Fix = Coord
Ring = Tuple[Coord, ...]


@dataclass(frozen=True, slots=True)
class Territory:
    """A captured polygon. Upgrades and builds produce a replaced copy."""

    id: str
    coords: Ring
    name: str
    category: TerritoryCategory
    area: int
    level: int = 1
    building: Optional[str] = None
    captured_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "coords": [coord.to_dict() for coord in self.coords],
            "name": self.name,
            "category": self.category,
            "area": self.area,
            "level": self.level,
            "building": self.building,
            "captured_at": self.captured_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Territory":
        category = str(payload.get("category") or payload.get("type") or "unknown")
        if category not in TERRITORY_CATEGORIES:
            category = "unknown"
        captured_raw = payload.get("captured_at")
        captured_at = (
            datetime.fromisoformat(captured_raw)
            if isinstance(captured_raw, str)
            else datetime.now(timezone.utc)
        )
        return cls(
            id=str(payload["id"]),
            coords=tuple(Coord.from_dict(item) for item in payload["coords"]),
            name=str(payload.get("name", "")),
            category=category,  # type: ignore[arg-type]
            area=max(0, int(payload.get("area", 0))),
            level=max(1, int(payload.get("level", 1))),
            building=payload.get("building"),
            captured_at=captured_at,
        )


@dataclass(frozen=True, slots=True)
class TargetZone:
    """A player-selected goal; capturing around it pays the target bonus."""

    latitude: float
    longitude: float
    radius_m: float
    name: str

    @property
    def center(self) -> Coord:
        return Coord(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Lootbox:
    coord: Coord
    amount: int


@dataclass(frozen=True, slots=True)
class PlaceInfo:
    """Reverse geocoding answer. Every field is optional."""

    street: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A geocoded search hit enriched for display and selection."""

    coord: Coord
    distance_m: float
    label: str


@dataclass(frozen=True, slots=True)
class PendingCapture:
    """An accepted loop waiting for classification."""

    ring: Ring
    area: float
    centroid: Coord


@dataclass(frozen=True, slots=True)
class CaptureOutcome:
    """Classifier output: the proposed territory and its total reward."""

    territory: Territory
    reward: int
    target_hit: bool = False


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    territories: Tuple[Territory, ...]
    cash: int
    last_collected_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "territories": [territory.to_dict() for territory in self.territories],
            "cash": self.cash,
            "last_collected_at": (
                self.last_collected_at.isoformat() if self.last_collected_at else None
            ),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "LedgerSnapshot":
        # Older snapshots stored the bare territory list.
        if isinstance(payload, list):
            return cls(
                territories=tuple(Territory.from_dict(item) for item in payload),
                cash=0,
            )
        territories: Sequence[Mapping[str, Any]] = payload.get("territories", [])
        collected_raw = payload.get("last_collected_at")
        return cls(
            territories=tuple(Territory.from_dict(item) for item in territories),
            cash=max(0, int(payload.get("cash", 0))),
            last_collected_at=(
                datetime.fromisoformat(collected_raw) if collected_raw else None
            ),
        )


@dataclass(frozen=True, slots=True)
class EngineSnapshot:
    """Read-only view of the whole session for renderers."""

    territories: Tuple[Territory, ...]
    cash: int
    path: Tuple[Coord, ...]
    position: Optional[Coord]
    target: Optional[TargetZone]
    lootbox: Optional[Lootbox]
    pending_captures: int
    tracking: bool
    target_distance_m: Optional[float] = None


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of a player action such as an upgrade or a build."""

    accepted: bool
    message: str
    territory: Optional[Territory] = None


def ring_from_pairs(pairs: Sequence[Sequence[float]]) -> List[Coord]:
    """Convert raw ``(lat, lon)`` pairs into coordinates."""

    return [Coord(float(lat), float(lon)) for lat, lon in pairs]
