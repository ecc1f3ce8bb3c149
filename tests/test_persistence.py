"""Tests for snapshot storage, debounced saving and ledger reloads."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path

import pytest

from territory_capture.errors import PersistenceError
from territory_capture.ledger import CaptureLedger, load_ledger
from territory_capture.models import Coord, LedgerSnapshot, Territory
from territory_capture.persistence import DebouncedSaver, JsonTerritoryStore

from conftest import BASE_LAT, BASE_LON, square_ring

KEY = "territory_polygons_v6"


def _territories(count: int) -> list[Territory]:
    categories = ["street", "city", "landmark"]
    return [
        Territory(
            id=str(1700000000000 + index),
            coords=tuple(square_ring(BASE_LAT + index * 0.01, BASE_LON, 0.001)),
            name=f"Place {index}",
            category=categories[index % 3],  # type: ignore[arg-type]
            area=1000 + index,
        )
        for index in range(count)
    ]


def test_round_trip_preserves_territories(tmp_path: Path) -> None:
    store = JsonTerritoryStore(tmp_path)
    originals = _territories(4)
    ledger = CaptureLedger(territories=originals, cash=321)
    ledger.upgrade(originals[0].id, cost=1)
    ledger.build(originals[1].id, "bank", 0)
    saved = ledger.territories

    store.save(KEY, ledger.snapshot().to_dict())
    reloaded = load_ledger(store, KEY)

    assert reloaded.cash == 320
    assert len(reloaded.territories) == 4
    assert saved[0].level == 2 and saved[1].building == "bank"
    for before, after in zip(saved, reloaded.territories):
        assert after.id == before.id
        assert after.coords == before.coords
        assert after.category == before.category
        assert after.area == before.area
        assert after.name == before.name
        assert after.level == before.level
        assert after.building == before.building
        assert after.captured_at == before.captured_at


def test_missing_snapshot_starts_new_game(tmp_path: Path) -> None:
    ledger = load_ledger(JsonTerritoryStore(tmp_path), KEY, starting_cash=100)
    assert ledger.cash == 100
    assert ledger.territories == ()


def test_corrupt_snapshot_starts_empty_with_zero_cash(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (tmp_path / f"{KEY}.json").write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.ERROR, logger="territory_capture.ledger"):
        ledger = load_ledger(JsonTerritoryStore(tmp_path), KEY, starting_cash=100)
    assert ledger.cash == 0
    assert ledger.territories == ()
    assert "failed to load snapshot" in caplog.text.lower()


def test_malformed_snapshot_starts_empty(tmp_path: Path) -> None:
    (tmp_path / f"{KEY}.json").write_text(
        json.dumps({"territories": [{"name": "no id"}]}), encoding="utf-8"
    )
    ledger = load_ledger(JsonTerritoryStore(tmp_path), KEY, starting_cash=100)
    assert ledger.cash == 0
    assert ledger.territories == ()


def test_legacy_list_snapshot_is_accepted(tmp_path: Path) -> None:
    legacy = [
        {
            "coords": [c.to_dict() for c in square_ring(BASE_LAT, BASE_LON, 0.001)],
            "id": "1699999999999",
            "name": "Old Road",
            "type": "street",
            "area": 12300,
            "level": 2,
            "date": "1/2/2024",
        }
    ]
    (tmp_path / f"{KEY}.json").write_text(json.dumps(legacy), encoding="utf-8")
    ledger = load_ledger(JsonTerritoryStore(tmp_path), KEY)
    territory = ledger.get("1699999999999")
    assert territory.category == "street"
    assert territory.level == 2
    assert territory.coords[0] == Coord(BASE_LAT, BASE_LON)


def test_unknown_category_is_normalised() -> None:
    payload = _territories(1)[0].to_dict()
    payload["category"] = "castle"
    assert Territory.from_dict(payload).category == "unknown"


def test_store_rejects_path_like_keys(tmp_path: Path) -> None:
    store = JsonTerritoryStore(tmp_path)
    with pytest.raises(PersistenceError):
        store.save("../escape", {})


def test_store_write_is_atomic_and_readable(tmp_path: Path) -> None:
    store = JsonTerritoryStore(tmp_path / "nested")
    snapshot = LedgerSnapshot(territories=tuple(_territories(2)), cash=5)
    store.save(KEY, snapshot.to_dict())
    assert not list((tmp_path / "nested").glob("*.tmp"))
    assert LedgerSnapshot.from_dict(store.load(KEY)).cash == 5


def test_debounced_saver_coalesces_bursts(tmp_path: Path) -> None:
    store = JsonTerritoryStore(tmp_path)
    ledger = CaptureLedger(cash=0)
    saver = DebouncedSaver(store, KEY, lambda: ledger.snapshot().to_dict(), delay=0.05)
    ledger.set_listener(saver.schedule)

    for territory in _territories(5):
        ledger.commit(territory, 10)

    deadline = time.monotonic() + 2.0
    while saver.writes < 1 and time.monotonic() < deadline:
        time.sleep(0.01)
    # Give a stray second timer the chance to fire.
    time.sleep(0.15)

    assert saver.writes == 1
    saved = LedgerSnapshot.from_dict(store.load(KEY))
    assert len(saved.territories) == 5
    assert saved.cash == 50


def test_flush_writes_pending_snapshot_immediately(tmp_path: Path) -> None:
    store = JsonTerritoryStore(tmp_path)
    ledger = CaptureLedger(cash=42)
    saver = DebouncedSaver(store, KEY, lambda: ledger.snapshot().to_dict(), delay=30)
    assert saver.flush() is False
    saver.schedule()
    assert saver.flush() is True
    assert store.load(KEY)["cash"] == 42
    assert saver.pending is False


def test_failed_write_is_logged_not_raised(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    class BrokenStore(JsonTerritoryStore):
        def save(self, key, payload):
            raise PersistenceError("disk full")

    saver = DebouncedSaver(BrokenStore(tmp_path), KEY, lambda: {}, delay=30)
    saver.schedule()
    with caplog.at_level(logging.ERROR, logger="territory_capture.persistence"):
        assert saver.flush() is False
    assert "disk full" in caplog.text


class _GatedStore(JsonTerritoryStore):
    """Holds the first save open until ``release`` is set."""

    def __init__(self, base_dir: Path) -> None:
        super().__init__(base_dir)
        self.started = threading.Event()
        self.release = threading.Event()
        self._calls = 0

    def save(self, key, payload):
        self._calls += 1
        if self._calls == 1:
            self.started.set()
            self.release.wait(2.0)
        super().save(key, payload)


def test_flush_lands_after_an_in_flight_timer_write(tmp_path: Path) -> None:
    store = _GatedStore(tmp_path)
    ledger = CaptureLedger(cash=1)
    saver = DebouncedSaver(store, KEY, lambda: ledger.snapshot().to_dict(), delay=0.05)
    ledger.set_listener(saver.schedule)

    saver.schedule()
    assert store.started.wait(2.0)
    ledger.credit(5)

    flusher = threading.Thread(target=saver.flush)
    flusher.start()
    time.sleep(0.1)
    store.release.set()
    flusher.join(timeout=2.0)
    assert not flusher.is_alive()

    deadline = time.monotonic() + 2.0
    while saver.writes < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    assert saver.writes == 2
    assert store.load(KEY)["cash"] == 6
