"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List
from enum import Enum


class InvalidStrategyConfig(ValueError):
    """Raised when a cache strategy cannot honour the refresh contract."""


class CachePriority(Enum):
    """Priority of a cache strategy (informational, reserved for eviction order)."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class CacheStrategy:
    """
    Caching policy attached to a key pattern.

    An entry governed by this strategy stays in the store for ``ttl_seconds``
    and becomes eligible for background refresh once its age reaches
    ``ttl_seconds * refresh_threshold``. Invalidating any key matching one of
    ``dependencies`` cascades to every key matching ``pattern``.
    """
    pattern: str
    ttl_seconds: float
    refresh_threshold: float = 0.8
    priority: CachePriority = CachePriority.MEDIUM
    dependencies: List[str] = field(default_factory=list)

    def __post_init__(self):
        if isinstance(self.priority, str):
            try:
                self.priority = CachePriority(self.priority)
            except ValueError:
                raise InvalidStrategyConfig(
                    f"Unknown priority {self.priority!r} for pattern {self.pattern!r}"
                ) from None
        self.dependencies = list(self.dependencies or [])
        self.validate()

    def validate(self) -> None:
        """Fail fast on configurations that would break refresh or expiry."""
        if not self.pattern:
            raise InvalidStrategyConfig("Strategy pattern must be a non-empty string")
        if not 0 < self.refresh_threshold <= 1:
            raise InvalidStrategyConfig(
                f"refresh_threshold must be in (0, 1], got {self.refresh_threshold} "
                f"for pattern {self.pattern!r}"
            )
        if self.ttl_seconds <= 0:
            raise InvalidStrategyConfig(
                f"ttl_seconds must be positive, got {self.ttl_seconds} "
                f"for pattern {self.pattern!r}"
            )

    @property
    def refresh_after_seconds(self) -> float:
        """Entry age at which a background refresh becomes eligible."""
        return self.ttl_seconds * self.refresh_threshold

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "pattern": self.pattern,
            "ttl_seconds": self.ttl_seconds,
            "refresh_threshold": self.refresh_threshold,
            "priority": self.priority.value,
            "dependencies": list(self.dependencies),
        }


@dataclass
class CacheEntry:
    """
    A stored value with the metadata needed for expiry and age checks.
    """
    value: Any
    written_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.written_at + self.ttl_seconds

    def age(self, now: float) -> float:
        """Seconds since the value was written."""
        return now - self.written_at

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def metadata(self) -> "EntryMetadata":
        return EntryMetadata(written_at=self.written_at, ttl_seconds=self.ttl_seconds)


@dataclass(frozen=True)
class EntryMetadata:
    """Write time and TTL of a stored entry, without its value."""
    written_at: float
    ttl_seconds: float

    def age(self, now: float) -> float:
        return now - self.written_at


@dataclass
class CacheMetrics:
    """
    Per-key access counters.

    Created lazily on first access and kept for the lifetime of the process
    unless pruned for inactivity.
    """
    hits: int = 0
    misses: int = 0
    refreshes: int = 0
    last_accessed: float = 0.0
    average_access_time: float = 0.0  # Seconds, exponentially smoothed
    samples: int = 0  # Latency samples folded into the average

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Hits over hits + misses, 0 when the key was never read."""
        total = self.total_requests
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "refreshes": self.refreshes,
            "last_accessed": self.last_accessed,
            "average_access_time": self.average_access_time,
            "hit_rate": self.hit_rate,
        }
