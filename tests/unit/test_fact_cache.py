"""
Tests for the TTL fact cache.
"""

import threading
import time

import pytest

from panewatch.errors import RunTimeout
from panewatch.fact_cache import DEFAULT_CWD_TTL, FactCache
from tests.fixtures import FakeClock


class TestTTL:
    """Entries are served until their TTL passes, then refetched"""

    def test_hit_within_ttl(self):
        clock = FakeClock()
        cache = FactCache(clock=clock)
        calls = []

        def fetch():
            calls.append(1)
            return "/home/dev/project"

        assert cache.get_or_fetch(42, DEFAULT_CWD_TTL, fetch) == "/home/dev/project"
        clock.advance(29)
        assert cache.get_or_fetch(42, DEFAULT_CWD_TTL, fetch) == "/home/dev/project"
        assert len(calls) == 1
        assert cache.hits == 1

    def test_miss_after_ttl(self):
        clock = FakeClock()
        cache = FactCache(clock=clock)
        values = iter(["/old", "/new"])

        assert cache.get_or_fetch(42, 30, lambda: next(values)) == "/old"
        clock.advance(31)
        assert cache.get_or_fetch(42, 30, lambda: next(values)) == "/new"
        assert cache.fetches == 2

    def test_zero_ttl_always_fetches(self):
        cache = FactCache(clock=FakeClock())
        calls = []
        for _ in range(3):
            cache.get_or_fetch("k", 0, lambda: calls.append(1))
        assert len(calls) == 3

    def test_keys_are_independent(self):
        cache = FactCache(clock=FakeClock())
        assert cache.get_or_fetch(1, 30, lambda: "a") == "a"
        assert cache.get_or_fetch(2, 30, lambda: "b") == "b"
        assert len(cache) == 2


class TestSingleFlight:
    """Concurrent lookups for one key share a fetch"""

    def test_two_threads_one_fetch(self):
        cache = FactCache()
        started = threading.Event()
        release = threading.Event()
        calls = []

        def fetch():
            calls.append(1)
            started.set()
            release.wait(2)
            return "value"

        results = []
        first = threading.Thread(target=lambda: results.append(cache.get_or_fetch("k", 30, fetch)))
        first.start()
        assert started.wait(2)
        second = threading.Thread(target=lambda: results.append(cache.get_or_fetch("k", 30, fetch)))
        second.start()
        time.sleep(0.05)
        release.set()
        first.join(2)
        second.join(2)

        assert results == ["value", "value"]
        assert len(calls) == 1

    def test_waiter_sees_leader_error(self):
        cache = FactCache()
        started = threading.Event()
        release = threading.Event()

        def fetch():
            started.set()
            release.wait(2)
            raise RunTimeout(["lsof"], 2.0)

        errors = []

        def lookup():
            try:
                cache.get_or_fetch("k", 30, fetch)
            except RunTimeout as e:
                errors.append(e)

        first = threading.Thread(target=lookup)
        first.start()
        assert started.wait(2)
        second = threading.Thread(target=lookup)
        second.start()
        time.sleep(0.05)
        release.set()
        first.join(2)
        second.join(2)
        assert len(errors) == 2


class TestFailures:
    """Fetch failures fall back to stale values when there are any"""

    def test_error_without_prior_value_propagates(self):
        cache = FactCache(clock=FakeClock())

        def fetch():
            raise RunTimeout(["lsof"], 2.0)

        with pytest.raises(RunTimeout):
            cache.get_or_fetch("k", 30, fetch)
        assert "k" not in cache

    def test_error_serves_stale_value(self):
        clock = FakeClock()
        cache = FactCache(clock=clock)
        cache.get_or_fetch("k", 30, lambda: "old")
        clock.advance(60)

        def fetch():
            raise RunTimeout(["lsof"], 2.0)

        assert cache.get_or_fetch("k", 30, fetch) == "old"
        assert cache.stale_served == 1


class TestHelpers:
    """Test peek, put and invalidate"""

    def test_peek_does_not_fetch(self):
        cache = FactCache(clock=FakeClock())
        assert cache.peek("k") is None
        cache.put("k", "v")
        assert cache.peek("k") == "v"

    def test_peek_respects_ttl(self):
        clock = FakeClock()
        cache = FactCache(clock=clock)
        cache.put("k", "v")
        clock.advance(10)
        assert cache.peek("k", ttl=5) is None
        assert cache.peek("k", ttl=20) == "v"

    def test_invalidate_and_clear(self):
        cache = FactCache(clock=FakeClock())
        cache.put("a", 1)
        cache.put("b", 2)
        cache.invalidate("a")
        assert "a" not in cache
        cache.clear()
        assert len(cache) == 0
