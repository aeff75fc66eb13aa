"""
Domain-level cache invalidation.

Translates application events (an entity was edited, a review was posted,
a user followed someone) into the key patterns the strategy manager
should drop. Mutating code calls these after its write succeeds; the
manager never observes writes on its own.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from .manager import CacheStrategyManager

logger = logging.getLogger("cache.invalidation")


class CacheInvalidationService:
    """
    Invalidation helpers keyed by the application's cache key conventions:

    - ``entity-{id}``, ``entity-recommendations-{id}``, ``entity-reviews-{id}``,
      ``entity-stats-{id}``
    - ``user-profile-{id}``, ``user-interactions-{id}``, ``user-behavior-{id}``
    - ``feed-*``, ``posts-*``, ``explore-*``, ``search-*``
    - ``recommendations-*``, ``reviews-*``, ``followers-{id}``, ``following-{id}``
    """

    def __init__(self, manager: CacheStrategyManager):
        self.manager = manager
        self._stats = {
            "events": 0,
            "entries_invalidated": 0,
        }

    def _invalidate(self, event: str, patterns: Iterable[str]) -> int:
        # Anchored: "reviews-*" must not reach "entity-reviews-{id}"
        count = sum(
            self.manager.invalidate_by_pattern(p, prefix=True) for p in patterns
        )
        self._stats["events"] += 1
        self._stats["entries_invalidated"] += count
        logger.info(f"Invalidated {count} entries for {event}")
        return count

    def record_change(self, key: str) -> int:
        """
        Report that the data behind one key changed.

        Drops the key itself and cascades to dependent strategies.
        """
        count = int(self.manager.invalidate(key))
        count += self.manager.invalidate_dependencies(key)
        self._stats["events"] += 1
        self._stats["entries_invalidated"] += count
        return count

    # Entity-related invalidations
    def invalidate_entity(self, entity_id: str) -> int:
        return self._invalidate(f"entity {entity_id}", _entity_keys(entity_id))

    def invalidate_entity_ecosystem(self, entity_id: str) -> int:
        """Entity plus every listing that might show it (feeds, explore, search)."""
        patterns = _entity_keys(entity_id) + ["feed-*", "explore-*", "search-*"]
        return self._invalidate(f"entity ecosystem {entity_id}", patterns)

    # User-related invalidations
    def invalidate_user_interactions(self, user_id: str) -> int:
        return self._invalidate(
            f"user interactions {user_id}", [f"user-interactions-{user_id}"]
        )

    def invalidate_profile(self, user_id: str) -> int:
        return self._invalidate(
            f"profile {user_id}", [f"user-profile-{user_id}", "profiles-*"]
        )

    def invalidate_user_ecosystem(self, user_id: str) -> int:
        """
        Everything tied to a user after they act: profile, interactions,
        their content and social graph, and feeds derived from their behaviour.
        """
        patterns = [
            f"user-profile-{user_id}",
            "profiles-*",
            f"user-interactions-{user_id}",
            f"recommendations-{user_id}",
            f"reviews-{user_id}",
            f"posts-{user_id}",
            f"followers-{user_id}",
            f"following-{user_id}",
        ]
        count = self._invalidate(f"user ecosystem {user_id}", patterns)
        count += self.record_change(f"user-behavior-{user_id}")
        return count

    # Content invalidations
    def invalidate_recommendation(
        self, recommendation_id: str, entity_id: Optional[str] = None
    ) -> int:
        patterns = ["recommendations-*"]
        if entity_id:
            patterns += [f"entity-recommendations-{entity_id}", f"entity-stats-{entity_id}"]
        return self._invalidate(f"recommendation {recommendation_id}", patterns)

    def invalidate_review(self, review_id: str, entity_id: Optional[str] = None) -> int:
        patterns = ["reviews-*"]
        if entity_id:
            patterns += [f"entity-reviews-{entity_id}", f"entity-stats-{entity_id}"]
        return self._invalidate(f"review {review_id}", patterns)

    def invalidate_feed(self) -> int:
        return self._invalidate("feed", ["feed-*", "posts-*"])

    def get_stats(self) -> Dict[str, Any]:
        """Get invalidation statistics."""
        return dict(self._stats)


def _entity_keys(entity_id: str) -> list:
    return [
        f"entity-{entity_id}",
        f"entity-recommendations-{entity_id}",
        f"entity-reviews-{entity_id}",
        f"entity-stats-{entity_id}",
    ]
