from datetime import datetime, timedelta

from app.models import InstitutionStatistics
from app.services.cache import StatsCache, create_stats_cache


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 3, 15, 10, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


def test_factory_uses_configured_ttl():
    assert create_stats_cache().ttl == timedelta(minutes=5)
    assert create_stats_cache(ttl_seconds=10).ttl == timedelta(seconds=10)


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = StatsCache(ttl_seconds=300, clock=clock)
    cache.set("inst-1", {"courses_count": 3, "students_count": 40})

    cached = cache.get("inst-1")
    assert isinstance(cached, InstitutionStatistics)
    assert cached.students_count == 40

    clock.advance(301)
    assert cache.get("inst-1") is None
    assert len(cache) == 0


def test_get_many_skips_missing_and_expired():
    clock = FakeClock()
    cache = StatsCache(ttl_seconds=60, clock=clock)
    cache.set("old", InstitutionStatistics(courses_count=1))
    clock.advance(45)
    cache.set_many({"new": {"courses_count": 2}})
    clock.advance(30)

    found = cache.get_many(["old", "new", "unknown"])
    assert list(found) == ["new"]


def test_invalidate_one_or_all():
    cache = StatsCache()
    cache.set_many({"a": {}, "b": {}, "c": {}})

    assert cache.invalidate("a") == 1
    assert cache.invalidate("a") == 0
    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_clear_expired_and_listing():
    clock = FakeClock()
    cache = StatsCache(ttl_seconds=100, clock=clock)
    cache.set("a", {})
    clock.advance(60)
    cache.set("b", {})
    clock.advance(50)

    entries = {e["institution_id"]: e for e in cache.list_entries()}
    assert entries["a"]["expires_in_seconds"] == 0
    assert entries["b"]["expires_in_seconds"] == 50

    assert cache.clear_expired() == 1
    assert cache.get("b") is not None
