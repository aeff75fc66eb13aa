"""
Per-key cache metrics and aggregate analytics.
"""
import time
import logging
from typing import Any, Callable, Dict, List, Optional

from .core import CacheMetrics

logger = logging.getLogger("cache.metrics")

# Number of keys reported in each performer list
PERFORMER_LIMIT = 5


class MetricsTracker:
    """
    Tracks hits, misses, refreshes and access latency per cache key.

    Records are created lazily on first touch and live until pruned for
    inactivity or removed alongside their cache entry.
    """

    def __init__(
        self,
        smoothing: float = 0.5,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            smoothing: Weight of the newest latency sample in the moving
                average. 0.5 reproduces the (old + new) / 2 update.
            clock: Returns the current time in seconds
        """
        if not 0 < smoothing <= 1:
            raise ValueError(f"smoothing must be in (0, 1], got {smoothing}")
        self._metrics: Dict[str, CacheMetrics] = {}
        self._smoothing = smoothing
        self._clock = clock

    def touch(self, key: str) -> CacheMetrics:
        """Get the record for a key, creating it if needed, and mark it accessed."""
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = CacheMetrics(last_accessed=self._clock())
            self._metrics[key] = metrics
        else:
            metrics.last_accessed = self._clock()
        return metrics

    def ensure(self, key: str) -> CacheMetrics:
        """Get the record for a key, creating it without counting an access."""
        metrics = self._metrics.get(key)
        if metrics is None:
            metrics = CacheMetrics(last_accessed=self._clock())
            self._metrics[key] = metrics
        return metrics

    def record_hit(self, key: str) -> None:
        self.touch(key).hits += 1

    def record_miss(self, key: str) -> None:
        self.touch(key).misses += 1

    def record_refresh(self, key: str) -> None:
        self.touch(key).refreshes += 1

    def record_access_time(self, key: str, seconds: float) -> None:
        """Fold one latency sample into the key's moving average."""
        metrics = self.touch(key)
        if metrics.samples == 0:
            metrics.average_access_time = seconds
        else:
            alpha = self._smoothing
            metrics.average_access_time = (
                (1 - alpha) * metrics.average_access_time + alpha * seconds
            )
        metrics.samples += 1

    def get(self, key: str) -> Optional[CacheMetrics]:
        return self._metrics.get(key)

    def remove(self, key: str) -> bool:
        return self._metrics.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._metrics)
        self._metrics.clear()
        return count

    def prune(self, max_idle_seconds: float) -> int:
        """
        Drop records not accessed within ``max_idle_seconds``.

        Returns:
            Number of records pruned
        """
        now = self._clock()
        idle = [
            key for key, metrics in self._metrics.items()
            if now - metrics.last_accessed > max_idle_seconds
        ]
        for key in idle:
            del self._metrics[key]
        if idle:
            logger.debug(f"Pruned metrics for {len(idle)} idle keys")
        return len(idle)

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, key: str) -> bool:
        return key in self._metrics

    def get_analytics(self) -> Dict[str, Any]:
        """
        Aggregate totals and rank keys by hit rate.

        Returns:
            Dict with total_keys, total_hits, total_misses, total_refreshes,
            hit_rate, top_performers and low_performers
        """
        total_hits = sum(m.hits for m in self._metrics.values())
        total_misses = sum(m.misses for m in self._metrics.values())
        total_refreshes = sum(m.refreshes for m in self._metrics.values())
        total_requests = total_hits + total_misses

        # sorted() is stable, so ties keep insertion order
        ranked: List[Dict[str, Any]] = sorted(
            (
                {
                    "key": key,
                    "hit_rate": metrics.hit_rate,
                    "total_requests": metrics.total_requests,
                    "average_access_time": metrics.average_access_time,
                }
                for key, metrics in self._metrics.items()
            ),
            key=lambda row: row["hit_rate"],
            reverse=True,
        )

        return {
            "total_keys": len(self._metrics),
            "total_hits": total_hits,
            "total_misses": total_misses,
            "total_refreshes": total_refreshes,
            "hit_rate": total_hits / total_requests if total_requests > 0 else 0.0,
            "top_performers": ranked[:PERFORMER_LIMIT],
            "low_performers": list(reversed(ranked[-PERFORMER_LIMIT:])),
        }
