"""
Key pattern matching for cache strategies and invalidation.

Patterns are simple wildcard strings such as ``"feed-*"``:

- A pattern without ``*`` matches only the identical key.
- Otherwise literal text is escaped, each ``*`` matches any run of characters,
  and the pattern may match anywhere in the key (substring search).
- A ``*`` directly after a separator also matches when both are absent, so
  ``"user-profile-*"`` matches ``"user-profile"`` as well as
  ``"user-profile-abc123"``, but not ``"user-profiles"``.
- With ``prefix=True`` the pattern must match from the start of the key, so
  ``"reviews-*"`` no longer matches ``"entity-reviews-7"``.
"""
import re
from functools import lru_cache
from typing import Pattern

WILDCARD = "*"
SEPARATORS = "-_:./"


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> Pattern[str]:
    """Translate a wildcard pattern into a compiled (unanchored) regex."""
    parts = pattern.split(WILDCARD)
    pieces = []

    for index, part in enumerate(parts):
        if index == len(parts) - 1:
            pieces.append(re.escape(part))
            continue

        trailing = index == len(parts) - 2 and parts[-1] == ""
        if part and part[-1] in SEPARATORS:
            sep = re.escape(part[-1])
            # "<sep>*" at the end may instead be the end of the key
            optional = f"(?:{sep}.*|$)" if trailing else f"(?:{sep}.*)?"
            pieces.append(re.escape(part[:-1]) + optional)
        else:
            pieces.append(re.escape(part) + ".*")

    return re.compile("".join(pieces))


def matches_pattern(key: str, pattern: str, prefix: bool = False) -> bool:
    """
    Check if a cache key matches a strategy or invalidation pattern.

    Args:
        key: Cache key, e.g. "feed-home-42"
        pattern: Exact key or wildcard pattern, e.g. "feed-*"
        prefix: Only match at the start of the key

    Returns:
        True if the key matches
    """
    if WILDCARD not in pattern:
        return key == pattern
    compiled = compile_pattern(pattern)
    found = compiled.match(key) if prefix else compiled.search(key)
    return found is not None
