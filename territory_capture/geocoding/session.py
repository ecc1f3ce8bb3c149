"""Pooled HTTP session used by the geocoding client."""

from __future__ import annotations

import threading

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import GEOCODER_USER_AGENT, HTTP_POOL_CONNECTIONS, HTTP_POOL_MAXSIZE

__all__ = ["create_default_session", "get_default_session"]

# 429 is left to the rate limiter so the whole client backs off together.
_RETRY_POLICY = Retry(
    total=2,
    backoff_factor=0.5,
    status_forcelist=(500, 502, 503, 504),
    allowed_methods=frozenset({"GET"}),
    respect_retry_after_header=False,
)

_shared: requests.Session | None = None
_shared_lock = threading.Lock()


def create_default_session(user_agent: str = GEOCODER_USER_AGENT) -> requests.Session:
    """New session with connection pooling, GET retries and identifying headers.

    Nominatim's usage policy rejects anonymous clients, so ``user_agent``
    should name the application and a contact.
    """

    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_RETRY_POLICY,
    )
    session = requests.Session()
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    session.headers["User-Agent"] = user_agent
    session.headers["Accept"] = "application/json"
    return session


def get_default_session() -> requests.Session:
    """Process-wide session, built on first use."""

    global _shared
    with _shared_lock:
        if _shared is None:
            _shared = create_default_session()
        return _shared
