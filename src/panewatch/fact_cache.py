"""
TTL cache for expensive, slowly-changing facts.

Used for process working directories, agent pids, session log paths and
legacy probe rate limiting. Entries are only replaced lazily, on the first
lookup after their TTL has passed; there is no background sweeper.

Concurrent lookups for the same key share a single fetch: the first caller
runs fetch_fn, the others wait for its outcome.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

from .logging_config import get_logger


log = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_CWD_TTL = 30.0


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    fetched_at: float


class _Flight:
    """Outcome of an in-progress fetch, shared with waiting callers."""

    def __init__(self):
        self.done = threading.Event()
        self.value = None
        self.error: Optional[BaseException] = None


class FactCache(Generic[K, V]):
    """Thread-safe TTL cache with per-key single-flight fetching.

    Args:
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._inflight: Dict[K, _Flight] = {}

        self.hits = 0
        self.fetches = 0
        self.stale_served = 0

    def get_or_fetch(self, key: K, ttl: float, fetch_fn: Callable[[], V]) -> V:
        """Return the cached value if younger than ttl, else fetch and store.

        If fetch_fn raises and an older value exists, the older value is
        returned (and kept). With no prior value the exception propagates.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() - entry.fetched_at < ttl:
                self.hits += 1
                return entry.value
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[key] = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            value = self._fetch(key, fetch_fn, flight)
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            flight.done.set()
        return value

    def _fetch(self, key: K, fetch_fn: Callable[[], V], flight: _Flight) -> V:
        with self._lock:
            self.fetches += 1
        try:
            value = fetch_fn()
        except Exception as e:
            with self._lock:
                stale = self._entries.get(key)
                if stale is not None:
                    self.stale_served += 1
            if stale is None:
                flight.error = e
                raise
            log.debug("fetch for %r failed (%s), serving stale value", key, e)
            flight.value = stale.value
            return stale.value

        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock())
        flight.value = value
        return value

    def peek(self, key: K, ttl: Optional[float] = None) -> Optional[V]:
        """Cached value without fetching (None if absent or older than ttl)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if ttl is not None and self._clock() - entry.fetched_at >= ttl:
                return None
            return entry.value

    def put(self, key: K, value: V) -> None:
        """Store a value fetched elsewhere."""
        with self._lock:
            self._entries[key] = CacheEntry(value, self._clock())

    def invalidate(self, key: K) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: K) -> bool:
        with self._lock:
            return key in self._entries
