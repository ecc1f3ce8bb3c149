"""Request pacing for the geocoding service.

Public Nominatim instances allow roughly one request per second per client and
answer bursts with 429. Every outgoing call goes through a :class:`RateLimiter`
slot, which caps concurrency, spaces request starts and honours cool-downs.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import random
import threading
import time
from typing import Iterator, Mapping, Optional

from ..config import (
    RATE_LIMIT_JITTER_RANGE,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MIN_INTERVAL_SECONDS,
    RATE_LIMIT_THROTTLE_SECONDS,
)

LOGGER = logging.getLogger(__name__)

__all__ = ["RateLimiter", "RequestSlot"]


def _retry_after_seconds(headers: Mapping[str, object] | None) -> Optional[float]:
    if not headers:
        return None
    raw = headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(0.0, float(str(raw)))
    except ValueError:
        # HTTP-date form; fall back to the configured pause.
        LOGGER.debug("Ignoring non-numeric Retry-After header %r", raw)
        return None


class RequestSlot:
    """One admitted request; report its outcome with :meth:`record`."""

    __slots__ = ("status_code", "headers")

    def __init__(self) -> None:
        self.status_code: int | None = None
        self.headers: Mapping[str, object] | None = None

    def record(self, status_code: int | None, headers: Mapping[str, object] | None = None) -> None:
        self.status_code = status_code
        self.headers = headers


class RateLimiter:
    """Concurrency cap plus a minimum gap between request starts.

    A 429 response pauses every caller for the server's ``Retry-After`` when it
    is numeric, otherwise for ``throttle_seconds``.
    """

    def __init__(
        self,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        min_interval: float = RATE_LIMIT_MIN_INTERVAL_SECONDS,
        jitter_range: tuple[float, float] = RATE_LIMIT_JITTER_RANGE,
        throttle_seconds: float = RATE_LIMIT_THROTTLE_SECONDS,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._capacity = max_concurrent
        self._active = 0
        self._gap = min_interval
        self._jitter = jitter_range
        self._pause = throttle_seconds
        self._earliest_start = 0.0
        self._blocked_until = 0.0
        self._cond = threading.Condition()

    @contextmanager
    def slot(self) -> Iterator[RequestSlot]:
        """Admit one request for the duration of the ``with`` block."""

        self.before_request()
        slot = RequestSlot()
        try:
            yield slot
        finally:
            self.after_response(slot.status_code, slot.headers)

    def before_request(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._active < self._capacity)
            self._active += 1
            delay = self._reserve_start()
        if delay > 0:
            time.sleep(delay)
        low, high = self._jitter
        if high > 0:
            # Jitter only smooths bursts; not security sensitive.
            time.sleep(random.uniform(low, high))  # nosec B311

    def _reserve_start(self) -> float:
        now = time.monotonic()
        start_at = max(now, self._earliest_start, self._blocked_until)
        self._earliest_start = start_at + self._gap
        return start_at - now

    def after_response(
        self,
        status_code: int | None,
        headers: Mapping[str, object] | None = None,
    ) -> None:
        with self._cond:
            if status_code == 429:
                pause = _retry_after_seconds(headers)
                if pause is None:
                    pause = self._pause
                self._blocked_until = max(self._blocked_until, time.monotonic() + pause)
                LOGGER.warning("Geocoder answered 429; pausing requests for %.1fs", pause)
            self._active = max(0, self._active - 1)
            self._cond.notify_all()

    def snapshot(self) -> dict[str, float | int]:
        """Current limiter state for tests and diagnostics."""

        with self._cond:
            return {
                "max_allowed": self._capacity,
                "in_flight": self._active,
                "throttle_until": self._blocked_until,
            }
