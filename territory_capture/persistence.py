"""Snapshot storage for territories and economy counters.

Snapshots are JSON documents written atomically (temp file + replace) under a
storage directory, one file per key. Writes are debounced: any burst of
mutations produces a single write of the latest state.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from .config import SAVE_DEBOUNCE_SECONDS, STORAGE_DIR
from .errors import PersistenceError

_LOGGER = logging.getLogger(__name__)


class JsonTerritoryStore:
    """Key/value store persisting one JSON document per key."""

    def __init__(self, base_dir: str | Path = STORAGE_DIR) -> None:
        base = Path(base_dir)
        self._base_dir = base if base.is_absolute() else Path.cwd() / base
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _file_path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self._base_dir / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        """Return the stored document or ``None`` when absent."""

        path = self._file_path(key)
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed reading snapshot {path}: {exc}") from exc

    def save(self, key: str, payload: Any) -> None:
        path = self._file_path(key)
        temp_path = path.with_suffix(".tmp")
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with temp_path.open("w", encoding="utf-8") as handle:
                    json.dump(payload, handle, ensure_ascii=True, indent=2)
                temp_path.replace(path)
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceError(
                    f"Failed writing snapshot {path}: {exc}"
                ) from exc


class DebouncedSaver:
    """Coalesce save requests into one write after a quiet period."""

    def __init__(
        self,
        store: JsonTerritoryStore,
        key: str,
        snapshot: Callable[[], Any],
        delay: float = SAVE_DEBOUNCE_SECONDS,
    ) -> None:
        self._store = store
        self._key = key
        self._snapshot = snapshot
        self._delay = max(0.0, delay)
        self._lock = threading.Lock()
        # Snapshot and save happen under one lock so writes land in snapshot order.
        self._write_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self.writes = 0

    def schedule(self) -> None:
        """Request a write; restarts the quiet-period timer."""

        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self._delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def flush(self) -> bool:
        """Write immediately if a save is pending. Returns True on a write.

        Always waits for a write already in progress to finish.
        """

        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            with self._write_lock:
                return False
        timer.cancel()
        return self._write()

    def _fire(self) -> None:
        with self._lock:
            if self._timer is None or self._timer is not threading.current_thread():
                return
            self._timer = None
        self._write()

    def _write(self) -> bool:
        with self._write_lock:
            try:
                self._store.save(self._key, self._snapshot())
            except PersistenceError as exc:
                _LOGGER.error("Snapshot save failed for key=%s: %s", self._key, exc)
                return False
            self.writes += 1
            count = self.writes
        _LOGGER.debug("Snapshot saved key=%s (write #%d)", self._key, count)
        return True


__all__ = ["JsonTerritoryStore", "DebouncedSaver"]
