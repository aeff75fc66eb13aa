"""
Primitive key/TTL cache store.

The strategy manager only talks to the ``CacheStore`` interface; the
in-memory ``TTLCacheStore`` is the default implementation.
"""
import threading
import time
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .core import CacheEntry, EntryMetadata

logger = logging.getLogger("cache.store")


class CacheStore(ABC):
    """Key/value store with a per-entry time-to-live."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the value, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store a value for ``ttl_seconds``."""

    @abstractmethod
    def has(self, key: str) -> bool:
        """True if the key holds an unexpired value."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""

    @abstractmethod
    def cleanup(self) -> int:
        """Evict expired entries. Returns the number evicted."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Snapshot of stored keys (may include not-yet-swept expired keys)."""

    @abstractmethod
    def get_entry_metadata(self, key: str) -> Optional[EntryMetadata]:
        """Write time and TTL of an entry, without evicting it."""

    @abstractmethod
    def clear(self) -> int:
        """Remove everything. Returns the number of entries removed."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class TTLCacheStore(CacheStore):
    """
    In-memory TTL store.

    Expired entries are dropped lazily on read and in bulk by ``cleanup()``.
    Thread-safe via a re-entrant lock so synchronous callers can share it.

    Usage:
        store = TTLCacheStore()
        store.set("entity-42", {"name": "..."}, ttl_seconds=1800)
        store.get("entity-42")
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Initialize the store.

        Args:
            clock: Returns the current time in seconds (injectable for tests)
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        entry = CacheEntry(value=value, written_at=self._clock(), ttl_seconds=ttl_seconds)
        with self._lock:
            self._entries[key] = entry

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired entries")
        return len(expired)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def get_entry_metadata(self, key: str) -> Optional[EntryMetadata]:
        with self._lock:
            entry = self._entries.get(key)
            return entry.metadata if entry is not None else None

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)
