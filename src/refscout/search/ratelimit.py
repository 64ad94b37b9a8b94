"""Per-index request pacing shared by the search clients of one discovery run."""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional


class RateLimiter:
    """Serialize calls per index and keep a minimum gap between them.

    Each index key gets its own lock, held for the whole request, so two
    PubMed calls never overlap while a PubMed call and an arXiv call can.

    Args:
        delay: Default minimum seconds between consecutive calls to one index.
        delays: Optional per-index overrides, e.g. {"biorxiv": 1.0}.
    """

    def __init__(self, delay: float = 0.4, delays: Optional[dict[str, float]] = None):
        self.delay = delay
        self.delays = dict(delays or {})
        self._locks: dict[str, threading.Lock] = {}
        self._last_request: dict[str, float] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def delay_for(self, key: str) -> float:
        return self.delays.get(key, self.delay)

    @contextmanager
    def slot(self, key: str) -> Iterator[None]:
        """Hold the index lock, waiting out the remaining delay first."""
        lock = self._lock_for(key)
        with lock:
            delay = self.delay_for(key)
            last = self._last_request.get(key)
            if last is not None and delay > 0:
                elapsed = time.monotonic() - last
                if elapsed < delay:
                    time.sleep(delay - elapsed)
            try:
                yield
            finally:
                self._last_request[key] = time.monotonic()
