"""Tests for the pure geometry helpers."""

from __future__ import annotations

import pytest

from territory_capture.geo_math import (
    centroid,
    distance,
    path_length,
    polygon_area,
    segments_intersect,
)
from territory_capture.models import Coord

from conftest import BASE_LAT, BASE_LON, square_ring


def test_distance_is_zero_for_identical_points() -> None:
    point = Coord(BASE_LAT, BASE_LON)
    assert distance(point, point) == 0.0


def test_distance_is_symmetric() -> None:
    a = Coord(51.5007, -0.1246)
    b = Coord(51.5194, -0.1270)
    assert distance(a, b) == pytest.approx(distance(b, a))
    assert distance(a, b) > 0


def test_distance_along_meridian_matches_one_kilometre() -> None:
    # 1000 m of arc on a 6371 km sphere.
    delta_deg = 1000.0 / 6371000.0 * (180.0 / 3.141592653589793)
    a = Coord(45.0, 7.0)
    b = Coord(45.0 + delta_deg, 7.0)
    assert distance(a, b) == pytest.approx(1000.0, abs=0.5)


def test_segments_crossing_diagonals_intersect() -> None:
    assert segments_intersect(Coord(0, 0), Coord(2, 2), Coord(0, 2), Coord(2, 0))


def test_parallel_segments_do_not_intersect() -> None:
    assert not segments_intersect(Coord(0, 0), Coord(0, 2), Coord(1, 0), Coord(1, 2))


def test_segment_does_not_cross_itself() -> None:
    a, b = Coord(0, 0), Coord(2, 2)
    assert not segments_intersect(a, b, a, b)


@pytest.mark.parametrize(
    "b1,b2",
    [
        # Shared endpoint.
        (Coord(2, 2), Coord(3, 0)),
        # T-junction touching the first segment's interior.
        (Coord(1, 1), Coord(2, 0)),
        # Collinear overlap.
        (Coord(1, 1), Coord(3, 3)),
    ],
)
def test_touching_and_collinear_cases_report_false(b1: Coord, b2: Coord) -> None:
    assert not segments_intersect(Coord(0, 0), Coord(2, 2), b1, b2)


def test_centroid_is_arithmetic_mean_including_closing_point() -> None:
    ring = [Coord(0, 0), Coord(0, 3), Coord(3, 0), Coord(0, 0)]
    center = centroid(ring)
    assert center.latitude == pytest.approx(0.75)
    assert center.longitude == pytest.approx(0.75)


def test_centroid_rejects_empty_ring() -> None:
    with pytest.raises(ValueError):
        centroid([])


def test_area_of_hundred_metre_square_is_close_to_ten_thousand() -> None:
    side_deg = 100.0 / 111000.0
    ring = square_ring(BASE_LAT, BASE_LON, side_deg)
    assert polygon_area(ring) == pytest.approx(10000.0, rel=0.02)


def test_area_of_degenerate_ring_is_zero() -> None:
    point = Coord(BASE_LAT, BASE_LON)
    assert polygon_area([point] * 5) == 0.0


def test_area_ignores_winding_direction() -> None:
    ring = square_ring(BASE_LAT, BASE_LON, 0.001)
    assert polygon_area(ring) == pytest.approx(polygon_area(list(reversed(ring))))


def test_path_length_sums_consecutive_legs() -> None:
    points = [Coord(45.0, 7.0), Coord(45.001, 7.0), Coord(45.002, 7.0)]
    assert path_length(points) == pytest.approx(distance(points[0], points[2]))
    assert path_length(points[:1]) == 0.0
