"""Location input: recorded tracks replayed as a live stream of fixes.

A source hands out one "current position" read to seed the session and a
subscription delivering fixes on a background thread. Fixes closer than the
minimum spacing to the previously delivered fix are dropped, mirroring the
distance filter of a device location service.
"""

from __future__ import annotations

import csv
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Optional, Protocol, Sequence

from defusedxml import ElementTree as ET

from .config import LOCATION_MIN_SPACING_M, REPLAY_INTERVAL_SECONDS
from .errors import LocationPermissionError, LocationUnavailableError
from .geo_math import distance
from .models import Coord, ring_from_pairs

LOGGER = logging.getLogger(__name__)

FixCallback = Callable[[Coord], None]


class Subscription:
    """Handle for a running fix stream; ``remove()`` stops delivery."""

    def __init__(self, thread: threading.Thread, stop_event: threading.Event) -> None:
        self._thread = thread
        self._stop_event = stop_event

    @property
    def active(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def remove(self) -> None:
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the stream ends. Returns True when it has finished."""

        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()


class LocationSource(Protocol):
    def current_position(self) -> Coord: ...

    def subscribe(self, callback: FixCallback) -> Subscription: ...


def filter_min_spacing(fixes: Iterable[Coord], min_spacing_m: float) -> Iterator[Coord]:
    """Yield fixes at least ``min_spacing_m`` from the last yielded one."""

    previous: Optional[Coord] = None
    for fix in fixes:
        if previous is not None and distance(previous, fix) < min_spacing_m:
            continue
        previous = fix
        yield fix


class TrackReplaySource:
    """Replays a recorded track as if it came from a device."""

    def __init__(
        self,
        fixes: Sequence[Coord],
        *,
        min_spacing_m: float = LOCATION_MIN_SPACING_M,
        interval_seconds: float = REPLAY_INTERVAL_SECONDS,
        permission_granted: bool = True,
    ) -> None:
        self._fixes = list(fixes)
        self._min_spacing_m = max(0.0, min_spacing_m)
        self._interval = max(0.0, interval_seconds)
        self.permission_granted = permission_granted

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "TrackReplaySource":
        return cls(load_track(path), **kwargs)

    def __len__(self) -> int:
        return len(self._fixes)

    def _ensure_permission(self) -> None:
        if not self.permission_granted:
            raise LocationPermissionError("Location permission not granted")

    def current_position(self) -> Coord:
        self._ensure_permission()
        if not self._fixes:
            raise LocationUnavailableError("Track contains no fixes")
        return self._fixes[0]

    def subscribe(self, callback: FixCallback) -> Subscription:
        self._ensure_permission()
        stop_event = threading.Event()

        def _run() -> None:
            delivered = 0
            for fix in filter_min_spacing(self._fixes, self._min_spacing_m):
                if stop_event.is_set():
                    break
                try:
                    callback(fix)
                except Exception as exc:  # noqa: BLE001 - keep the stream alive
                    LOGGER.error("Fix handler failed for %s: %s", fix, exc, exc_info=True)
                delivered += 1
                if self._interval and stop_event.wait(self._interval):
                    break
            LOGGER.info("Track replay finished after %d fixes", delivered)

        thread = threading.Thread(target=_run, name="track-replay", daemon=True)
        thread.start()
        return Subscription(thread, stop_event)


# ---------------------------------------------------------------------------
# Track file readers
# ---------------------------------------------------------------------------
def load_track(path: str | Path) -> List[Coord]:
    """Read fixes from a ``.gpx``, ``.json`` or ``.csv`` file."""

    source = Path(path)
    suffix = source.suffix.lower()
    if suffix == ".gpx":
        fixes = _read_gpx(source)
    elif suffix == ".json":
        fixes = _read_json(source)
    elif suffix == ".csv":
        fixes = _read_csv(source)
    else:
        raise ValueError(f"Unsupported track format: {source.suffix or source.name}")
    LOGGER.info("Loaded %d fixes from %s", len(fixes), source)
    return fixes


def _read_gpx(source: Path) -> List[Coord]:
    tree = ET.parse(source)
    fixes: List[Coord] = []
    for element in tree.getroot().iter():
        tag = element.tag.rsplit("}", 1)[-1]
        if tag not in {"trkpt", "rtept"}:
            continue
        try:
            fixes.append(Coord(float(element.get("lat")), float(element.get("lon"))))
        except (TypeError, ValueError):
            LOGGER.debug("Skipping GPX point without coordinates")
    return fixes


def _read_json(source: Path) -> List[Coord]:
    with source.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("fixes") or payload.get("latlng") or []
    if not isinstance(payload, list):
        raise ValueError("JSON track must be a list of fixes")
    if payload and isinstance(payload[0], dict):
        return [Coord.from_dict(item) for item in payload]
    return ring_from_pairs(payload)


def _read_csv(source: Path) -> List[Coord]:
    fixes: List[Coord] = []
    with source.open("r", encoding="utf-8", newline="") as handle:
        for row in csv.reader(handle):
            if len(row) < 2:
                continue
            try:
                fixes.append(Coord(float(row[0]), float(row[1])))
            except ValueError:
                # Header row or comment.
                continue
    return fixes


__all__ = [
    "LocationSource",
    "Subscription",
    "TrackReplaySource",
    "filter_min_spacing",
    "load_track",
]
