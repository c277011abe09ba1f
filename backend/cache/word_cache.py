"""Read-through cache for per-learner word data.

Entries are keyed by learner, level, optional batch number and a cache kind.
The cache is eventually consistent with best-effort invalidation: every
mutation of word or learner state must invalidate the affected keys after the
write is durable, and if invalidation fails the per-kind TTL bounds how long
stale data can be served.

Cache backend failures never fail the calling operation. Reads and writes
degrade to a miss; invalidation raises ``CacheFault`` so the caller can log it
and carry on.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

from backend.cache.backends import CacheBackend, MemoryBackend
from backend.config import Settings
from backend.errors import CacheFault
from backend.progression.policy import PROFICIENCY_LEVELS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheKind(str, Enum):
    USER_WORDS = "user_words"
    LEARNED_WORDS = "learned_words"
    WORD_COUNT = "word_count"
    BATCH = "batch"
    BATCH_STATS = "batch_stats"
    GENERATED_WORDS = "generated"


# Volatile kinds get shorter TTLs
DEFAULT_TTLS: dict[CacheKind, float] = {
    CacheKind.WORD_COUNT: 3600,
    CacheKind.USER_WORDS: 1800,
    CacheKind.BATCH: 1800,
    CacheKind.LEARNED_WORDS: 900,
    CacheKind.BATCH_STATS: 900,
    CacheKind.GENERATED_WORDS: 7200,
}


# --- Key construction ---


def user_words_key(learner_id: int, level: str | None = None) -> str:
    suffix = f":{level}" if level else ""
    return f"{CacheKind.USER_WORDS.value}:{learner_id}{suffix}"


def learned_words_key(learner_id: int) -> str:
    return f"{CacheKind.LEARNED_WORDS.value}:{learner_id}"


def word_count_key(learner_id: int, level: str) -> str:
    return f"{CacheKind.WORD_COUNT.value}:{learner_id}:{level}"


def batch_key(learner_id: int, level: str, batch_number: int) -> str:
    return f"{CacheKind.BATCH.value}:{learner_id}:{level}:{batch_number}"


def batch_stats_key(learner_id: int, level: str) -> str:
    return f"{CacheKind.BATCH_STATS.value}:{learner_id}:{level}"


def generated_words_key(language: str, native_language: str, level: str, count: int) -> str:
    return (
        f"{CacheKind.GENERATED_WORDS.value}:{language.lower()}:"
        f"{native_language.lower()}:{level}:{count}"
    )


def kind_of(key: str) -> CacheKind:
    return CacheKind(key.split(":", 1)[0])


class WordCache:
    """Word cache with explicit lifecycle: ``start``, periodic cleanup, ``shutdown``."""

    def __init__(
        self,
        backend: CacheBackend | None = None,
        ttls: dict[CacheKind, float] | None = None,
        levels: tuple[str, ...] = PROFICIENCY_LEVELS,
        batches_per_level: int = 20,
        cleanup_interval_seconds: float = 300.0,
    ) -> None:
        self.backend = backend or MemoryBackend()
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.levels = levels
        self.batches_per_level = batches_per_level
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.hits = 0
        self.misses = 0
        self.invalidation_failures = 0
        self._cleanup_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, settings: Settings, backend: CacheBackend | None = None) -> WordCache:
        backend = backend or MemoryBackend(
            max_entries=settings.cache_max_entries,
            eviction_fraction=settings.cache_eviction_fraction,
        )
        return cls(
            backend=backend,
            ttls={
                CacheKind.WORD_COUNT: settings.cache_ttl_word_count,
                CacheKind.USER_WORDS: settings.cache_ttl_user_words,
                CacheKind.BATCH: settings.cache_ttl_batch,
                CacheKind.LEARNED_WORDS: settings.cache_ttl_learned_words,
                CacheKind.BATCH_STATS: settings.cache_ttl_batch_stats,
                CacheKind.GENERATED_WORDS: settings.cache_ttl_generated_words,
            },
            batches_per_level=math.ceil(settings.words_per_level / settings.words_per_batch),
            cleanup_interval_seconds=settings.cache_cleanup_interval_seconds,
        )

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start the periodic cleanup sweep."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="word-cache-cleanup")
            logger.info("Word cache started (%s backend)", self.backend.name)

    async def shutdown(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None
        self.clear()
        logger.info("Word cache shut down")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval_seconds)
            self.cleanup()

    def cleanup(self) -> int:
        try:
            removed = self.backend.cleanup()
        except Exception as e:
            logger.warning("Cache cleanup failed: %s", e)
            return 0
        if removed:
            logger.debug("Cache cleanup removed %d expired entries", removed)
        return removed

    # --- Basic operations ---

    def get(self, key: str) -> Any | None:
        try:
            value = self.backend.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, e)
            value = None
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        if ttl is None:
            ttl = self.ttls[kind_of(key)]
        try:
            self.backend.set(key, value, ttl)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            self.backend.delete(key)
        except Exception as e:
            raise CacheFault(f"Failed to delete cache key {key}: {e}") from e

    def clear(self) -> None:
        try:
            self.backend.clear()
        except Exception as e:
            logger.warning("Cache clear failed: %s", e)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return the cached value, or load it from persistence and cache it."""
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await loader()
        self.set(key, value, ttl)
        return value

    # --- Invalidation ---

    def invalidate_user(self, learner_id: int) -> None:
        """Delete every cache kind for a learner across all levels and batches.

        The key space is enumerated from configuration rather than scanned.
        """
        keys = [user_words_key(learner_id), learned_words_key(learner_id)]
        for level in self.levels:
            keys.append(user_words_key(learner_id, level))
            keys.append(word_count_key(learner_id, level))
            keys.append(batch_stats_key(learner_id, level))
            keys.extend(
                batch_key(learner_id, level, batch_number)
                for batch_number in range(1, self.batches_per_level + 1)
            )
        self._delete_all(keys)

    def invalidate_batch(self, learner_id: int, level: str, batch_number: int) -> None:
        """Delete one batch entry plus the learner's aggregate entries.

        A single learned-state flip changes aggregate counts, so aggregates
        are dropped together with the batch itself.
        """
        self._delete_all(
            [
                batch_key(learner_id, level, batch_number),
                batch_stats_key(learner_id, level),
                user_words_key(learner_id, level),
                user_words_key(learner_id),
                learned_words_key(learner_id),
            ]
        )

    def _delete_all(self, keys: list[str]) -> None:
        failed: list[str] = []
        for key in keys:
            try:
                self.backend.delete(key)
            except Exception as e:
                logger.debug("Failed to delete %s: %s", key, e)
                failed.append(key)
        if failed:
            self.invalidation_failures += 1
            raise CacheFault(f"Failed to invalidate {len(failed)} of {len(keys)} cache keys")

    def stats(self) -> dict[str, Any]:
        try:
            size = self.backend.size()
        except Exception as e:
            logger.warning("Cache size lookup failed: %s", e)
            size = -1
        return {
            "type": self.backend.name,
            "size": size,
            "hits": self.hits,
            "misses": self.misses,
            "invalidation_failures": self.invalidation_failures,
        }
