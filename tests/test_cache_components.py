"""
Unit tests for cache building blocks.

Tests pattern matching, strategy validation, the TTL store, request
coalescing and metrics tracking in isolation.
"""
import asyncio

import pytest

from app.cache import (
    CachePriority,
    CacheStrategy,
    InvalidStrategyConfig,
    MetricsTracker,
    RequestCoalescer,
    TTLCacheStore,
    matches_pattern,
)


# =============================================================================
# Test Fixtures
# =============================================================================

class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TTLCacheStore(clock=clock)


# =============================================================================
# Pattern Matching Tests
# =============================================================================

class TestPatternMatching:
    """Tests for wildcard key patterns."""

    def test_wildcard_matches_suffix(self):
        assert matches_pattern("user-profile-abc123", "user-profile-*")

    def test_wildcard_matches_bare_prefix(self):
        """The separator before a wildcard is optional along with it."""
        assert matches_pattern("user-profile", "user-profile-*")

    def test_wildcard_rejects_other_prefix(self):
        assert not matches_pattern("user-profiles", "user-profile-*")
        assert not matches_pattern("entity-1", "feed-*")

    def test_wildcard_is_substring_search(self):
        assert matches_pattern("home-feed-42", "feed-*")

    def test_prefix_match_is_anchored(self):
        assert matches_pattern("reviews-u1", "reviews-*", prefix=True)
        assert matches_pattern("reviews", "reviews-*", prefix=True)
        assert not matches_pattern("entity-reviews-7", "reviews-*", prefix=True)

    def test_pattern_without_wildcard_is_exact(self):
        assert matches_pattern("feed-home", "feed-home")
        assert not matches_pattern("feed-home-2", "feed-home")

    def test_regex_metacharacters_are_literal(self):
        assert matches_pattern("search-q=a.b+c", "search-q=a.b+*")
        assert not matches_pattern("search-q=aXb+c", "search-q=a.b+*")

    def test_wildcard_in_middle(self):
        assert matches_pattern("entity-42-reviews", "entity-*-reviews")
        assert not matches_pattern("entity-42-stats", "entity-*-reviews")


# =============================================================================
# Strategy Tests
# =============================================================================

class TestCacheStrategy:
    """Tests for strategy validation."""

    @pytest.mark.parametrize("threshold", [0, -0.5, 1.01])
    def test_rejects_threshold_out_of_range(self, threshold):
        with pytest.raises(InvalidStrategyConfig):
            CacheStrategy(pattern="feed-*", ttl_seconds=60, refresh_threshold=threshold)

    def test_threshold_of_one_is_allowed(self):
        strategy = CacheStrategy(pattern="feed-*", ttl_seconds=60, refresh_threshold=1.0)
        assert strategy.refresh_after_seconds == 60

    def test_rejects_non_positive_ttl(self):
        with pytest.raises(InvalidStrategyConfig):
            CacheStrategy(pattern="feed-*", ttl_seconds=0)

    def test_priority_accepts_string(self):
        strategy = CacheStrategy(pattern="feed-*", ttl_seconds=60, priority="high")
        assert strategy.priority is CachePriority.HIGH

    def test_invalid_config_is_value_error(self):
        with pytest.raises(ValueError):
            CacheStrategy(pattern="", ttl_seconds=60)


# =============================================================================
# Store Tests
# =============================================================================

class TestTTLCacheStore:
    """Tests for the primitive key/TTL store."""

    def test_get_within_ttl(self, store, clock):
        store.set("entity-1", {"name": "Cafe"}, ttl_seconds=10)
        clock.advance(9.9)
        assert store.get("entity-1") == {"name": "Cafe"}
        assert store.has("entity-1")

    def test_get_after_ttl_returns_none(self, store, clock):
        store.set("entity-1", "value", ttl_seconds=10)
        clock.advance(10)
        assert store.get("entity-1") is None
        assert not store.has("entity-1")

    def test_metadata_does_not_evict(self, store, clock):
        store.set("entity-1", "value", ttl_seconds=10)
        clock.advance(20)
        meta = store.get_entry_metadata("entity-1")
        assert meta is not None
        assert meta.ttl_seconds == 10
        assert meta.age(clock()) == 20
        assert "entity-1" in store.keys()

    def test_cleanup_evicts_only_expired(self, store, clock):
        store.set("short", 1, ttl_seconds=5)
        store.set("long", 2, ttl_seconds=50)
        clock.advance(6)
        assert store.cleanup() == 1
        assert store.keys() == ["long"]

    def test_delete_and_clear(self, store):
        store.set("a", 1, ttl_seconds=5)
        store.set("b", 2, ttl_seconds=5)
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.clear() == 1
        assert len(store) == 0


# =============================================================================
# Coalescer Tests
# =============================================================================

class TestRequestCoalescer:
    """Tests for in-flight request deduplication."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self):
        coalescer = RequestCoalescer()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return object()

        results = await asyncio.gather(
            *(coalescer.get_or_fetch("feed-1", fetch) for _ in range(5))
        )

        assert calls == 1
        assert all(r is results[0] for r in results)
        assert coalescer.active_requests == 0

    @pytest.mark.asyncio
    async def test_error_reaches_every_caller_and_releases_key(self):
        coalescer = RequestCoalescer()

        async def fetch():
            await asyncio.sleep(0.01)
            raise RuntimeError("upstream down")

        results = await asyncio.gather(
            *(coalescer.get_or_fetch("feed-1", fetch) for _ in range(3)),
            return_exceptions=True,
        )

        assert all(isinstance(r, RuntimeError) for r in results)
        assert not coalescer.is_in_flight("feed-1")

    @pytest.mark.asyncio
    async def test_sequential_calls_fetch_again(self):
        coalescer = RequestCoalescer()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return calls

        assert await coalescer.get_or_fetch("k", fetch) == 1
        assert await coalescer.get_or_fetch("k", fetch) == 2

    @pytest.mark.asyncio
    async def test_timeout_leaves_fetch_running(self):
        coalescer = RequestCoalescer(timeout=0.01)
        finished = asyncio.Event()

        async def fetch():
            await asyncio.sleep(0.05)
            finished.set()
            return "late"

        with pytest.raises(asyncio.TimeoutError):
            await coalescer.get_or_fetch("slow", fetch)

        assert coalescer.is_in_flight("slow")
        await asyncio.wait_for(finished.wait(), timeout=1)
        await asyncio.sleep(0.01)
        assert not coalescer.is_in_flight("slow")


# =============================================================================
# Metrics Tests
# =============================================================================

class TestMetricsTracker:
    """Tests for per-key metrics."""

    def test_counts_and_hit_rate(self, clock):
        tracker = MetricsTracker(clock=clock)
        for _ in range(3):
            tracker.record_hit("a")
        tracker.record_miss("a")

        metrics = tracker.get("a")
        assert metrics.hits == 3
        assert metrics.misses == 1
        assert metrics.hit_rate == 0.75

    def test_first_sample_seeds_average_then_halves(self, clock):
        tracker = MetricsTracker(smoothing=0.5, clock=clock)
        tracker.record_access_time("a", 0.010)
        assert tracker.get("a").average_access_time == pytest.approx(0.010)
        tracker.record_access_time("a", 0.030)
        assert tracker.get("a").average_access_time == pytest.approx(0.020)

    def test_ensure_does_not_count_access(self, clock):
        tracker = MetricsTracker(clock=clock)
        metrics = tracker.ensure("a")
        assert metrics.total_requests == 0

    def test_prune_idle(self, clock):
        tracker = MetricsTracker(clock=clock)
        tracker.record_hit("old")
        clock.advance(3601)
        tracker.record_hit("fresh")

        assert tracker.prune(max_idle_seconds=3600) == 1
        assert "old" not in tracker
        assert "fresh" in tracker

    def test_analytics_with_no_requests(self, clock):
        analytics = MetricsTracker(clock=clock).get_analytics()
        assert analytics["hit_rate"] == 0
        assert analytics["top_performers"] == []

    def test_rejects_bad_smoothing(self):
        with pytest.raises(ValueError):
            MetricsTracker(smoothing=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
