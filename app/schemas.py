"""
Pydantic schemas for the cache admin API.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from app.cache import CachePriority, CacheStrategy


# ===== STRATEGY SCHEMAS =====

class StrategyIn(BaseModel):
    """Strategy registration request"""
    pattern: str = Field(min_length=1)
    ttl_seconds: float
    refresh_threshold: float = 0.8
    priority: CachePriority = CachePriority.MEDIUM
    dependencies: List[str] = []

    def to_strategy(self) -> CacheStrategy:
        """Build a validated CacheStrategy (raises InvalidStrategyConfig)."""
        return CacheStrategy(
            pattern=self.pattern,
            ttl_seconds=self.ttl_seconds,
            refresh_threshold=self.refresh_threshold,
            priority=self.priority,
            dependencies=list(self.dependencies),
        )


class StrategyOut(BaseModel):
    """Registered strategy"""
    pattern: str
    ttl_seconds: float
    refresh_threshold: float
    priority: CachePriority
    dependencies: List[str]

    class Config:
        from_attributes = True


# ===== ANALYTICS SCHEMAS =====

class PerformerOut(BaseModel):
    """Per-key hit rate row"""
    key: str
    hit_rate: float
    total_requests: int
    average_access_time: float


class CacheAnalyticsOut(BaseModel):
    """Aggregate cache analytics"""
    total_keys: int
    total_hits: int
    total_misses: int
    total_refreshes: int
    hit_rate: float
    strategies_count: int
    store_size: int
    background_refresh_enabled: bool
    refreshing_count: int
    top_performers: List[PerformerOut]
    low_performers: List[PerformerOut]
    in_flight: Dict[str, Any]


# ===== INVALIDATION SCHEMAS =====

class InvalidationOut(BaseModel):
    """Result of an invalidation request"""
    pattern: Optional[str] = None
    key: Optional[str] = None
    invalidated: int


class MaintenanceOut(BaseModel):
    """Result of a maintenance pass"""
    metrics_pruned: int
    entries_evicted: int
