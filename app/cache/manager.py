"""
Strategy-aware cache orchestration with stale-while-revalidate, request
coalescing and dependency-based invalidation.
"""
import asyncio
import dataclasses
import time
import logging
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from .core import CacheStrategy
from .coalescer import RequestCoalescer
from .metrics import MetricsTracker
from .patterns import matches_pattern
from .store import CacheStore, TTLCacheStore
from .ttl_policies import DEFAULT_TTL_SECONDS, default_strategies

logger = logging.getLogger("cache.manager")

RefreshFn = Callable[[], Awaitable[Any]]

MAINTENANCE_INTERVAL_SECONDS = 5 * 60
METRICS_MAX_IDLE_SECONDS = 60 * 60


class CacheStrategyManager:
    """
    Main cache orchestration with:
    - Pattern-based strategies (TTL, refresh threshold, dependencies)
    - Stale-while-revalidate background refresh on hits
    - Request coalescing for concurrent misses
    - Cascade invalidation through strategy dependencies
    - Per-key hit/miss/refresh metrics and analytics
    - Start/stop-able background maintenance

    All methods are meant to be called from a single event loop.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        background_refresh_enabled: bool = True,
        seed_default_strategies: bool = True,
        access_time_smoothing: float = 0.5,
        coalesce_timeout: Optional[float] = None,
        maintenance_interval_seconds: float = MAINTENANCE_INTERVAL_SECONDS,
        metrics_max_idle_seconds: float = METRICS_MAX_IDLE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache manager.

        Args:
            store: Primitive key/TTL store (defaults to an in-memory TTLCacheStore)
            default_ttl_seconds: TTL for keys no strategy matches
            background_refresh_enabled: Allow refresh-on-hit
            seed_default_strategies: Register the baseline policy table
            access_time_smoothing: Weight of the newest latency sample
            coalesce_timeout: Max seconds to wait on another caller's fetch
            maintenance_interval_seconds: Period of the maintenance loop
            metrics_max_idle_seconds: Metrics idle longer than this are pruned
            clock: Returns the current time in seconds (injectable for tests)
        """
        self._clock = clock
        self._store = store if store is not None else TTLCacheStore(clock=clock)
        self._default_ttl = default_ttl_seconds
        self._background_refresh_enabled = background_refresh_enabled

        # Insertion order is resolution order
        self._strategies: Dict[str, CacheStrategy] = {}
        self._metrics = MetricsTracker(smoothing=access_time_smoothing, clock=clock)
        self._coalescer = RequestCoalescer(timeout=coalesce_timeout)

        # Background refresh
        self._refreshing: Set[str] = set()
        self._background_tasks: Set["asyncio.Task[None]"] = set()

        # Maintenance
        self._maintenance_interval = maintenance_interval_seconds
        self._metrics_max_idle = metrics_max_idle_seconds
        self._maintenance_task: Optional["asyncio.Task[None]"] = None

        if seed_default_strategies:
            for strategy in default_strategies():
                self.set_strategy(strategy.pattern, strategy)

    @classmethod
    def from_settings(cls, settings, store: Optional[CacheStore] = None) -> "CacheStrategyManager":
        """Build a manager from application settings."""
        return cls(
            store=store,
            default_ttl_seconds=settings.cache_default_ttl_seconds,
            background_refresh_enabled=settings.cache_background_refresh_enabled,
            seed_default_strategies=settings.cache_seed_default_strategies,
            access_time_smoothing=settings.cache_access_time_smoothing,
            coalesce_timeout=settings.cache_coalesce_timeout_seconds,
            maintenance_interval_seconds=settings.cache_maintenance_interval_seconds,
            metrics_max_idle_seconds=settings.cache_metrics_max_idle_seconds,
        )

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def metrics(self) -> MetricsTracker:
        return self._metrics

    # ------------------------------------------------------------------
    # Strategy registry
    # ------------------------------------------------------------------

    def set_strategy(self, pattern: str, strategy: CacheStrategy) -> None:
        """
        Register or overwrite the strategy for a key pattern.

        Re-registering an existing pattern keeps its place in resolution order.

        Raises:
            InvalidStrategyConfig: If the strategy breaks the refresh contract
        """
        if strategy.pattern != pattern:
            # replace() re-runs validation
            strategy = dataclasses.replace(strategy, pattern=pattern)
        else:
            strategy.validate()
        self._strategies[pattern] = strategy
        logger.debug(
            f"Strategy set: {pattern} [ttl={strategy.ttl_seconds}s, "
            f"threshold={strategy.refresh_threshold}]"
        )

    def remove_strategy(self, pattern: str) -> bool:
        """
        Remove a registered strategy.

        Returns:
            True if the pattern was registered
        """
        return self._strategies.pop(pattern, None) is not None

    @property
    def strategies(self) -> List[CacheStrategy]:
        """Registered strategies in resolution order."""
        return list(self._strategies.values())

    def resolve_strategy(self, key: str) -> Optional[CacheStrategy]:
        """Return the first registered strategy whose pattern matches the key."""
        for pattern, strategy in self._strategies.items():
            if matches_pattern(key, pattern):
                return strategy
        return None

    # ------------------------------------------------------------------
    # Get / set
    # ------------------------------------------------------------------

    async def get(self, key: str, refresh_fn: Optional[RefreshFn] = None) -> Optional[Any]:
        """
        Get data from cache, fetching it on a miss if refresh_fn is given.

        On a hit past the strategy's refresh threshold, a background refresh
        is scheduled and the cached value is returned without waiting for it.

        Args:
            key: Non-empty cache key
            refresh_fn: Zero-argument coroutine function producing fresh data

        Returns:
            Cached or fetched data, or None when absent or the fetch failed
        """
        _validate_key(key)
        started = time.perf_counter()
        strategy = self.resolve_strategy(key)

        try:
            cached = self._store.get(key)

            if cached is not None:
                logger.debug(f"CACHE HIT: {key}")
                self._metrics.record_hit(key)
                if strategy is not None and refresh_fn is not None:
                    self._maybe_background_refresh(key, strategy, refresh_fn)
                return cached

            logger.info(f"CACHE MISS: {key}")
            self._metrics.record_miss(key)

            if refresh_fn is None:
                return None

            data = await self.fetch_with_deduplication(key, refresh_fn)
            if data is not None:
                self.set(key, data)
            return data
        finally:
            self._metrics.record_access_time(key, time.perf_counter() - started)

    def set(self, key: str, data: Any, custom_ttl: Optional[float] = None) -> None:
        """
        Store data using TTL precedence: custom_ttl > strategy TTL > default.

        A custom_ttl of zero or less counts as not given.
        """
        _validate_key(key)
        if custom_ttl is not None and custom_ttl > 0:
            ttl = custom_ttl
        else:
            strategy = self.resolve_strategy(key)
            ttl = strategy.ttl_seconds if strategy is not None else self._default_ttl

        self._store.set(key, data, ttl)
        self._metrics.ensure(key)

    def _maybe_background_refresh(
        self,
        key: str,
        strategy: CacheStrategy,
        refresh_fn: RefreshFn,
    ) -> None:
        """Schedule a refresh without blocking if the entry is old enough."""
        if not self._background_refresh_enabled:
            return

        if key in self._refreshing:
            logger.debug(f"Already refreshing: {key}")
            return

        meta = self._store.get_entry_metadata(key)
        if meta is None:
            return

        age = meta.age(self._clock())
        if age < strategy.refresh_after_seconds:
            return

        logger.info(f"CACHE HIT (refreshing): {key} [age={age:.1f}s]")
        self._refreshing.add(key)
        task = asyncio.ensure_future(self._background_refresh(key, strategy, refresh_fn))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _background_refresh(
        self,
        key: str,
        strategy: CacheStrategy,
        refresh_fn: RefreshFn,
    ) -> None:
        """
        Fetch and store a fresh value for a key that is still being served.

        The result is written even if the key was invalidated while the fetch
        ran (last writer wins).
        """
        try:
            data = await self._coalescer.get_or_fetch(key, refresh_fn)
            if data is not None:
                self.set(key, data, strategy.ttl_seconds)
                self._metrics.record_refresh(key)
                logger.info(f"Background refreshed cache key: {key}")
        except Exception as e:
            # Old value keeps serving until it expires
            logger.warning(f"Background refresh failed: {key} - {e!r}")
        finally:
            self._refreshing.discard(key)

    async def wait_for_background_refreshes(self) -> None:
        """Wait until every scheduled background refresh has settled."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def set_background_refresh(self, enabled: bool) -> None:
        """Enable/disable refresh-on-hit."""
        self._background_refresh_enabled = enabled
        logger.info(f"Background refresh {'enabled' if enabled else 'disabled'}")

    @property
    def background_refresh_enabled(self) -> bool:
        return self._background_refresh_enabled

    # ------------------------------------------------------------------
    # Deduplicated fetch
    # ------------------------------------------------------------------

    async def fetch_with_deduplication(self, key: str, refresh_fn: RefreshFn) -> Optional[Any]:
        """
        Fetch through the coalescer so concurrent callers share one call.

        Returns:
            The fetched data, or None if the fetch failed
        """
        try:
            return await self._coalescer.get_or_fetch(key, refresh_fn)
        except Exception as e:
            logger.warning(f"Failed to fetch data for key {key}: {e!r}")
            return None

    async def warm_cache(self, loaders: Mapping[str, RefreshFn]) -> int:
        """
        Prefetch keys that are not cached yet.

        Args:
            loaders: Cache key -> refresh function

        Returns:
            Number of keys stored
        """
        pending = {key: fn for key, fn in loaders.items() if not self._store.has(key)}
        if not pending:
            return 0

        logger.info(f"Warming {len(pending)} cache keys")
        results = await asyncio.gather(
            *(self.fetch_with_deduplication(key, fn) for key, fn in pending.items())
        )

        warmed = 0
        for key, data in zip(pending, results):
            if data is not None:
                self.set(key, data)
                warmed += 1
        return warmed

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, key: str) -> bool:
        """
        Invalidate a specific cache entry and its metrics.

        Returns:
            True if entry was found and removed
        """
        removed = self._store.delete(key)
        self._metrics.remove(key)
        if removed:
            logger.info(f"Invalidated cache: {key}")
        return removed

    def invalidate_by_pattern(self, pattern: str, prefix: bool = False) -> int:
        """
        Invalidate all cache entries matching a pattern.

        Args:
            pattern: Exact key or wildcard pattern
            prefix: Only match keys that start with the pattern

        Returns:
            Number of entries invalidated
        """
        count = 0
        for key in self._store.keys():
            if matches_pattern(key, pattern, prefix=prefix):
                if self._store.delete(key):
                    count += 1
                self._metrics.remove(key)

        logger.info(f"Invalidated {count} cache entries matching pattern: {pattern}")
        return count

    def invalidate_dependencies(self, changed_key: str) -> int:
        """
        Invalidate every strategy pattern that depends on the changed key.

        Only one level deep: keys depending on the newly invalidated keys
        are left alone.

        Returns:
            Total number of entries invalidated
        """
        count = 0
        for pattern, strategy in list(self._strategies.items()):
            for dependency in strategy.dependencies:
                if matches_pattern(changed_key, dependency):
                    count += self.invalidate_by_pattern(pattern)
                    break

        if count > 0:
            logger.info(f"Invalidated {count} dependent cache entries for: {changed_key}")
        return count

    def clear(self) -> int:
        """
        Clear all cache entries and metrics.

        Returns:
            Number of entries cleared
        """
        count = self._store.clear()
        self._metrics.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def perform_maintenance(self) -> Dict[str, int]:
        """Prune idle metrics and evict expired entries."""
        pruned = self._metrics.prune(self._metrics_max_idle)
        evicted = self._store.cleanup()
        if pruned or evicted:
            logger.info(
                f"Cache maintenance: pruned {pruned} metrics, "
                f"cleaned {evicted} expired entries"
            )
        return {"metrics_pruned": pruned, "entries_evicted": evicted}

    def start(self) -> None:
        """
        Start the periodic maintenance loop on the running event loop.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._maintenance_task = loop.create_task(self._maintenance_loop())
        logger.info(f"Cache maintenance started (every {self._maintenance_interval}s)")

    async def stop(self) -> None:
        """Stop the maintenance loop. In-flight refreshes are left to finish."""
        task = self._maintenance_task
        self._maintenance_task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info("Cache maintenance stopped")

    @property
    def is_running(self) -> bool:
        return self._maintenance_task is not None and not self._maintenance_task.done()

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self._maintenance_interval)
            try:
                self.perform_maintenance()
            except Exception:
                logger.exception("Cache maintenance failed")

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_cache_analytics(self) -> Dict[str, Any]:
        """Get aggregate cache analytics."""
        analytics = self._metrics.get_analytics()
        analytics.update({
            "strategies_count": len(self._strategies),
            "store_size": len(self._store),
            "background_refresh_enabled": self._background_refresh_enabled,
            "refreshing_count": len(self._refreshing),
            "in_flight": self._coalescer.get_stats(),
        })
        return analytics


def _validate_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError(f"Cache key must be a non-empty string, got {key!r}")


# Process-wide default manager (not started until someone calls start())
_cache_manager: Optional[CacheStrategyManager] = None


def get_cache_manager() -> CacheStrategyManager:
    """Get or create the global cache manager."""
    global _cache_manager
    if _cache_manager is None:
        from config.settings import settings
        _cache_manager = CacheStrategyManager.from_settings(settings)
    return _cache_manager


def reset_cache_manager() -> None:
    """Forget the global cache manager (the next get creates a new one)."""
    global _cache_manager
    _cache_manager = None
