"""
Default caching strategies by key pattern.
"""
from typing import Any, Dict, List

from .core import CachePriority, CacheStrategy

# Fallback TTL (seconds) for keys no strategy matches
DEFAULT_TTL_SECONDS = 5 * 60


# Baseline policy, in resolution order (first matching pattern wins)
STRATEGY_CONFIG: Dict[str, Dict[str, Any]] = {
    # User profiles - read often, edited occasionally
    "user-profile-*": {
        "ttl_seconds": 15 * 60,       # 15 minutes
        "refresh_threshold": 0.7,     # Refresh at 70% of TTL
        "priority": CachePriority.HIGH,
        "dependencies": [],
    },
    # Feeds - change constantly, rebuilt when behaviour data changes
    "feed-*": {
        "ttl_seconds": 5 * 60,        # 5 minutes
        "refresh_threshold": 0.8,
        "priority": CachePriority.HIGH,
        "dependencies": ["user-behavior-*"],
    },
    # Search results
    "search-*": {
        "ttl_seconds": 10 * 60,       # 10 minutes
        "refresh_threshold": 0.6,
        "priority": CachePriority.MEDIUM,
        "dependencies": [],
    },
    # Entity reference data - slow-changing
    "entity-*": {
        "ttl_seconds": 30 * 60,       # 30 minutes
        "refresh_threshold": 0.5,
        "priority": CachePriority.LOW,
        "dependencies": [],
    },
    # Derived behaviour aggregates
    "user-behavior-*": {
        "ttl_seconds": 24 * 60 * 60,  # 24 hours
        "refresh_threshold": 0.9,
        "priority": CachePriority.HIGH,
        "dependencies": [],
    },
}


def default_strategies() -> List[CacheStrategy]:
    """Build fresh strategy objects from STRATEGY_CONFIG, in order."""
    return [
        CacheStrategy(
            pattern=pattern,
            ttl_seconds=config["ttl_seconds"],
            refresh_threshold=config["refresh_threshold"],
            priority=config["priority"],
            dependencies=list(config["dependencies"]),
        )
        for pattern, config in STRATEGY_CONFIG.items()
    ]
