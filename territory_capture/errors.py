"""Central error types used across the application."""

from __future__ import annotations


class TerritoryCaptureError(RuntimeError):
    """Base error for the territory capture engine."""


class GeocodingError(TerritoryCaptureError):
    """Raised when a forward or reverse geocoding lookup fails."""


class PersistenceError(TerritoryCaptureError):
    """Raised when a snapshot cannot be read or written."""


class LocationUnavailableError(TerritoryCaptureError):
    """Raised when no position can be obtained from the location source."""


class LocationPermissionError(LocationUnavailableError):
    """Raised when the location source has not been granted permission."""


class ActionRejectedError(TerritoryCaptureError):
    """Base error for player actions refused without any state change."""


class InsufficientFundsError(ActionRejectedError):
    """Raised when cash does not cover the cost of a purchase."""

    def __init__(self, cost: int, cash: int) -> None:
        super().__init__(f"Not enough cash: need ${cost}, have ${cash}")
        self.cost = cost
        self.cash = cash


class MaxLevelError(ActionRejectedError):
    """Raised when a territory is already at the maximum level."""


class SlotOccupiedError(ActionRejectedError):
    """Raised when a territory already holds a building."""


class TerritoryNotFoundError(ActionRejectedError):
    """Raised when an action names a territory that does not exist."""


__all__ = [
    "TerritoryCaptureError",
    "GeocodingError",
    "PersistenceError",
    "LocationUnavailableError",
    "LocationPermissionError",
    "ActionRejectedError",
    "InsufficientFundsError",
    "MaxLevelError",
    "SlotOccupiedError",
    "TerritoryNotFoundError",
]
