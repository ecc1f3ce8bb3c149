"""Tests for TerritoryClassifier decisions and fallbacks."""

from __future__ import annotations

import logging

import pytest

from territory_capture.classifier import (
    RewardTable,
    TerritoryClassifier,
    TerritoryIdFactory,
    latest_numeric_id,
)
from territory_capture.mission import MissionTargeting
from territory_capture.models import Coord, PendingCapture, PlaceInfo
from territory_capture.loop_extractor import LoopExtractor

from conftest import BASE_LAT, BASE_LON, FakeGeocoder, square_ring


def _pending(side_deg: float) -> PendingCapture:
    pending = LoopExtractor(min_area_m2=0).extract(
        square_ring(BASE_LAT, BASE_LON, side_deg)
    )
    assert pending is not None
    return pending


STREET_SIDE = 0.001  # ~12 300 m2
CITY_SIDE = 0.0015  # ~27 700 m2


def test_small_loop_becomes_street_named_after_street(fake_geocoder) -> None:
    classifier = TerritoryClassifier(MissionTargeting(), fake_geocoder)
    outcome = classifier.classify(_pending(STREET_SIDE))
    assert outcome.territory.category == "street"
    assert outcome.territory.name == "Rue de Rivoli"
    assert outcome.reward == 10 + 20
    assert not outcome.target_hit


def test_large_loop_becomes_city(fake_geocoder) -> None:
    classifier = TerritoryClassifier(MissionTargeting(), fake_geocoder)
    pending = _pending(CITY_SIDE)
    outcome = classifier.classify(pending)
    assert outcome.territory.category == "city"
    assert outcome.territory.name == "Paris"
    assert outcome.reward == 10 + 100
    assert outcome.territory.area == int(pending.area)
    assert outcome.territory.coords == pending.ring
    assert outcome.territory.level == 1
    assert fake_geocoder.reverse_calls == [pending.centroid]


def test_city_name_falls_back_to_district_then_literal() -> None:
    geocoder = FakeGeocoder(place=PlaceInfo(district="Le Marais"))
    classifier = TerritoryClassifier(MissionTargeting(), geocoder)
    assert classifier.classify(_pending(CITY_SIDE)).territory.name == "Le Marais"

    geocoder.place = PlaceInfo(street="Rue X")
    assert classifier.classify(_pending(CITY_SIDE)).territory.name == "City Sector"


def test_street_name_falls_back_to_point_name_then_literal() -> None:
    geocoder = FakeGeocoder(place=PlaceInfo(name="Louvre"))
    classifier = TerritoryClassifier(MissionTargeting(), geocoder)
    assert classifier.classify(_pending(STREET_SIDE)).territory.name == "Louvre"

    geocoder.place = None
    assert classifier.classify(_pending(STREET_SIDE)).territory.name == "Unnamed Road"


def test_geocoding_failure_still_produces_capture(caplog) -> None:
    geocoder = FakeGeocoder(fail_reverse=True)
    classifier = TerritoryClassifier(MissionTargeting(), geocoder)
    with caplog.at_level(logging.WARNING, logger="territory_capture.classifier"):
        city = classifier.classify(_pending(CITY_SIDE))
        street = classifier.classify(_pending(STREET_SIDE))
    assert (city.territory.category, city.territory.name, city.reward) == (
        "city",
        "City Sector",
        110,
    )
    assert (street.territory.category, street.territory.name, street.reward) == (
        "street",
        "Unnamed Road",
        30,
    )
    assert "reverse geocoding failed" in caplog.text.lower()


def test_unexpected_geocoder_error_is_contained() -> None:
    class Exploding:
        def geocode(self, text):
            return []

        def reverse_geocode(self, coord):
            raise RuntimeError("boom")

    classifier = TerritoryClassifier(MissionTargeting(), Exploding())
    outcome = classifier.classify(_pending(STREET_SIDE))
    assert outcome.territory.name == "Unnamed Road"


def test_target_hit_wins_over_city_classification(fake_geocoder) -> None:
    mission = MissionTargeting()
    pending = _pending(CITY_SIDE)
    mission.set_target(pending.centroid, 150.0, "Louvre Museum (Rue de Rivoli)")
    classifier = TerritoryClassifier(mission, fake_geocoder)

    outcome = classifier.classify(pending)

    assert outcome.target_hit
    assert outcome.territory.category == "landmark"
    assert outcome.territory.name == "Louvre Museum (Rue de Rivoli)"
    assert outcome.reward == 10 + 500
    assert mission.target is None
    # Target hits never need a reverse lookup.
    assert fake_geocoder.reverse_calls == []


def test_target_is_single_shot(fake_geocoder) -> None:
    mission = MissionTargeting()
    pending = _pending(STREET_SIDE)
    mission.set_target(pending.centroid, 150.0, "Cafe")
    classifier = TerritoryClassifier(mission, fake_geocoder)
    assert classifier.classify(pending).territory.category == "landmark"
    assert classifier.classify(pending).territory.category == "street"


def test_capture_outside_target_radius_is_generic(fake_geocoder) -> None:
    mission = MissionTargeting()
    pending = _pending(STREET_SIDE)
    far = Coord(BASE_LAT + 0.01, BASE_LON)  # ~1.1 km away
    mission.set_target(far, 150.0, "Far Away")
    outcome = TerritoryClassifier(mission, fake_geocoder).classify(pending)
    assert outcome.territory.category == "street"
    assert mission.target is not None


def test_custom_reward_table(fake_geocoder) -> None:
    rewards = RewardTable(base=1, street_bonus=2, city_bonus=3, target_bonus=4)
    classifier = TerritoryClassifier(MissionTargeting(), fake_geocoder, rewards=rewards)
    assert classifier.classify(_pending(STREET_SIDE)).reward == 3
    assert classifier.classify(_pending(CITY_SIDE)).reward == 4


def test_id_factory_is_unique_within_same_millisecond() -> None:
    factory = TerritoryIdFactory(clock=lambda: 1700000000.0)
    ids = [factory() for _ in range(5)]
    assert len(set(ids)) == 5
    assert [int(value) for value in ids] == sorted(int(value) for value in ids)


def test_id_factory_continues_after_loaded_ids_when_clock_is_behind() -> None:
    loaded = ["1700000000500", "legacy-7", "1699999999999"]
    factory = TerritoryIdFactory(
        clock=lambda: 1700000000.0, last_issued=latest_numeric_id(loaded)
    )
    assert factory() == "1700000000501"
    assert factory() == "1700000000502"
    assert latest_numeric_id([]) == 0


@pytest.mark.parametrize("side,expected", [(STREET_SIDE, "street"), (CITY_SIDE, "city")])
def test_missing_geocoder_uses_area_bucket(side: float, expected: str) -> None:
    outcome = TerritoryClassifier(MissionTargeting()).classify(_pending(side))
    assert outcome.territory.category == expected
