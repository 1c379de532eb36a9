"""
Response cache tests: TTL, local-midnight invalidation and the entry limit.
"""
from app.utils.response_cache import ResponseCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def test_hit_within_ttl():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("k", {"spend": 1}, ttl=60)
    clock.advance(59)
    assert cache.get("k") == {"spend": 1}


def test_miss_after_ttl():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("k", 1, ttl=60)
    clock.advance(61)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_local_day_rollover_invalidates_before_ttl():
    clock = FakeClock()
    cache = ResponseCache(clock=clock)
    cache.set("meta:b1:today", 100, ttl=60, boundary="2024-03-14")
    clock.advance(1)
    assert cache.get("meta:b1:today", boundary="2024-03-14") == 100
    # 23:59 -> 00:00: the TTL still has seconds left
    assert cache.get("meta:b1:today", boundary="2024-03-15") is None


def test_get_or_compute_computes_once():
    cache = ResponseCache(clock=FakeClock())
    calls = []

    def compute():
        calls.append(1)
        return {"spend": 10}

    first = cache.get_or_compute("k", compute, ttl=60, boundary_fn=lambda: "2024-03-14")
    second = cache.get_or_compute("k", compute, ttl=60, boundary_fn=lambda: "2024-03-14")
    assert first == second == {"spend": 10}
    assert len(calls) == 1

    cache.get_or_compute("k", compute, ttl=60, boundary_fn=lambda: "2024-03-15")
    assert len(calls) == 2


def test_none_is_not_cached():
    cache = ResponseCache(clock=FakeClock())
    assert cache.get_or_compute("k", lambda: None) is None
    assert len(cache) == 0


def test_expired_entries_evicted_first():
    clock = FakeClock()
    cache = ResponseCache(max_entries=2, clock=clock)
    cache.set("old", 1, ttl=10)
    cache.set("fresh", 2, ttl=100)
    clock.advance(20)
    cache.set("new", 3, ttl=100)
    assert cache.get("fresh") == 2
    assert cache.get("new") == 3
    assert len(cache) == 2


def test_oldest_evicted_at_limit():
    clock = FakeClock()
    cache = ResponseCache(max_entries=2, clock=clock)
    cache.set("a", 1, ttl=100)
    clock.advance(1)
    cache.set("b", 2, ttl=100)
    clock.advance(1)
    cache.set("c", 3, ttl=100)
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_invalidate_prefix():
    cache = ResponseCache(clock=FakeClock())
    cache.set("meta:b1:x", 1)
    cache.set("meta:b1:y", 2)
    cache.set("meta:b2:x", 3)
    assert cache.invalidate("meta:b1:") == 2
    assert cache.get("meta:b2:x") == 3


def test_clear():
    cache = ResponseCache(clock=FakeClock())
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0
