"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable geometry factories and a
scriptable geocoder so tests never touch the network.
"""
from __future__ import annotations

import os
import sys
import threading
from typing import List, Optional

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from territory_capture.errors import GeocodingError
from territory_capture.models import Coord, PlaceInfo

BASE_LAT = 48.8566
BASE_LON = 2.3522


# --- Factory helpers -------------------------------------------------
def square_ring(lat: float, lon: float, side_deg: float) -> List[Coord]:
    """Closed square ring (first point repeated) with ``side_deg`` edges."""
    return [
        Coord(lat, lon),
        Coord(lat, lon + side_deg),
        Coord(lat + side_deg, lon + side_deg),
        Coord(lat + side_deg, lon),
        Coord(lat, lon),
    ]


def loop_fixes(lat: float, lon: float, side_deg: float) -> List[Coord]:
    """Five fixes walking three sides of a square and cutting back across
    the first edge, so the fifth fix closes a loop against segment 0-1.

    The enclosed shoelace area is 5/6 * side^2 (in degrees squared).
    """
    return [
        Coord(lat, lon),
        Coord(lat, lon + side_deg),
        Coord(lat + side_deg, lon + side_deg),
        Coord(lat + side_deg, lon),
        Coord(lat - side_deg / 2, lon + side_deg / 3),
    ]


def straight_fixes(count: int, lat: float = BASE_LAT, lon: float = BASE_LON) -> List[Coord]:
    """Fixes along a meridian; consecutive segments never properly cross."""
    return [Coord(lat + index * 0.0001, lon) for index in range(count)]


class FakeGeocoder:
    """Scriptable stand-in for the geocoding collaborator."""

    def __init__(
        self,
        place: Optional[PlaceInfo] = None,
        hits: Optional[List[Coord]] = None,
        fail_reverse: bool = False,
        fail_search: bool = False,
        gate: Optional[threading.Event] = None,
    ) -> None:
        self.place = place
        self.hits = hits or []
        self.fail_reverse = fail_reverse
        self.fail_search = fail_search
        self.gate = gate
        self.reverse_calls: List[Coord] = []
        self.search_calls: List[str] = []
        self.labels: dict[Coord, PlaceInfo] = {}

    def geocode(self, text: str) -> List[Coord]:
        self.search_calls.append(text)
        if self.fail_search:
            raise GeocodingError("search offline")
        return list(self.hits)

    def reverse_geocode(self, coord: Coord) -> Optional[PlaceInfo]:
        self.reverse_calls.append(coord)
        if self.gate is not None:
            self.gate.wait(5.0)
        if self.fail_reverse:
            raise GeocodingError("reverse offline")
        return self.labels.get(coord, self.place)


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def street_place():
    return PlaceInfo(street="Rue de Rivoli", city="Paris", district="1er", name="Louvre")


@pytest.fixture
def fake_geocoder(street_place):
    return FakeGeocoder(place=street_place)
