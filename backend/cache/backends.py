"""Storage backends for the word cache.

The cache talks to its store only through ``CacheBackend`` so the in-process
memory store can be replaced by a networked one without touching callers.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float
    written_at: float


class CacheBackend(ABC):
    """Key/value store with per-entry expiry."""

    name: str = "abstract"

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value if present and not expired, else None."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: float) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed."""
        ...

    @abstractmethod
    def size(self) -> int: ...


class MemoryBackend(CacheBackend):
    """In-process dictionary store.

    Expiry is checked lazily on read; ``cleanup`` only reclaims memory.
    When the store is full, the oldest ``eviction_fraction`` of entries by
    write time is evicted. Reads do not refresh recency, so this approximates
    LRU by write recency only.
    """

    name = "memory"

    def __init__(
        self,
        max_entries: int = 1000,
        eviction_fraction: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.eviction_fraction = eviction_fraction
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            self._evict_oldest()
        now = self._clock()
        self._entries[key] = CacheEntry(value=value, expires_at=now + ttl_seconds, written_at=now)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def size(self) -> int:
        return len(self._entries)

    def _evict_oldest(self) -> None:
        count = max(1, math.floor(self.max_entries * self.eviction_fraction))
        oldest = sorted(self._entries.items(), key=lambda item: item[1].written_at)[:count]
        for key, _ in oldest:
            del self._entries[key]
        logger.debug("Evicted %d oldest cache entries", len(oldest))
