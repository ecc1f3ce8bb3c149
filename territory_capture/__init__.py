"""Territory capture engine: walk a loop, claim what it encloses."""

from .engine import CaptureEngine, EngineConfig
from .errors import ActionRejectedError, GeocodingError, TerritoryCaptureError
from .models import Coord, Territory, TargetZone
from .main import main

__all__ = [
    "main",
    "CaptureEngine",
    "EngineConfig",
    "Coord",
    "Territory",
    "TargetZone",
    "ActionRejectedError",
    "GeocodingError",
    "TerritoryCaptureError",
]
