"""
Strategy-aware caching module with pattern TTLs, request coalescing,
stale-while-revalidate and dependency-based invalidation.
"""
from .core import (
    CacheEntry,
    CacheMetrics,
    CachePriority,
    CacheStrategy,
    EntryMetadata,
    InvalidStrategyConfig,
)
from .patterns import compile_pattern, matches_pattern
from .store import CacheStore, TTLCacheStore
from .ttl_policies import DEFAULT_TTL_SECONDS, STRATEGY_CONFIG, default_strategies
from .coalescer import RequestCoalescer
from .metrics import MetricsTracker
from .manager import CacheStrategyManager, get_cache_manager, reset_cache_manager
from .invalidation import CacheInvalidationService

__all__ = [
    # Core types
    "CacheEntry",
    "CacheMetrics",
    "CachePriority",
    "CacheStrategy",
    "EntryMetadata",
    "InvalidStrategyConfig",
    # Patterns
    "compile_pattern",
    "matches_pattern",
    # Store
    "CacheStore",
    "TTLCacheStore",
    # Strategy policies
    "DEFAULT_TTL_SECONDS",
    "STRATEGY_CONFIG",
    "default_strategies",
    # Coalescing
    "RequestCoalescer",
    # Metrics
    "MetricsTracker",
    # Manager
    "CacheStrategyManager",
    "get_cache_manager",
    "reset_cache_manager",
    # Invalidation
    "CacheInvalidationService",
]
