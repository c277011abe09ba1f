"""Tests for the word cache and its memory backend."""

from unittest.mock import MagicMock

import pytest

from backend.cache.backends import CacheBackend, MemoryBackend
from backend.cache.word_cache import (
    CacheKind,
    WordCache,
    batch_key,
    batch_stats_key,
    generated_words_key,
    kind_of,
    learned_words_key,
    user_words_key,
    word_count_key,
)
from backend.config import Settings
from backend.errors import CacheFault


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> WordCache:
    return WordCache(backend=MemoryBackend(clock=clock), batches_per_level=20)


def _failing_backend() -> MagicMock:
    backend = MagicMock(spec=CacheBackend)
    backend.name = "broken"
    backend.get.side_effect = ConnectionError("down")
    backend.set.side_effect = ConnectionError("down")
    backend.delete.side_effect = ConnectionError("down")
    return backend


# --- Keys ---


class TestKeys:
    def test_key_formats(self) -> None:
        assert user_words_key(7) == "user_words:7"
        assert user_words_key(7, "A1") == "user_words:7:A1"
        assert batch_key(7, "B2", 3) == "batch:7:B2:3"
        assert generated_words_key("Spanish", "English", "A1", 50) == "generated:spanish:english:A1:50"

    def test_kind_of(self) -> None:
        assert kind_of(word_count_key(1, "A1")) is CacheKind.WORD_COUNT
        assert kind_of(batch_stats_key(1, "A1")) is CacheKind.BATCH_STATS
        assert kind_of(learned_words_key(1)) is CacheKind.LEARNED_WORDS


# --- Memory backend ---


class TestMemoryBackend:
    def test_expiry_is_lazy(self, clock: FakeClock) -> None:
        backend = MemoryBackend(clock=clock)
        backend.set("k", "v", ttl_seconds=10)
        clock.advance(10)
        assert backend.get("k") == "v"
        clock.advance(0.1)
        assert backend.get("k") is None
        assert backend.size() == 0

    def test_cleanup_removes_expired(self, clock: FakeClock) -> None:
        backend = MemoryBackend(clock=clock)
        backend.set("short", 1, ttl_seconds=5)
        backend.set("long", 2, ttl_seconds=500)
        clock.advance(60)
        assert backend.cleanup() == 1
        assert backend.get("long") == 2

    def test_evicts_oldest_fifth_when_full(self, clock: FakeClock) -> None:
        backend = MemoryBackend(max_entries=10, clock=clock)
        for i in range(10):
            backend.set(f"k{i}", i, ttl_seconds=100)
            clock.advance(1)
        backend.set("new", "x", ttl_seconds=100)
        assert backend.size() == 9
        assert backend.get("k0") is None
        assert backend.get("k1") is None
        assert backend.get("k2") == 2
        assert backend.get("new") == "x"

    def test_overwrite_does_not_evict(self, clock: FakeClock) -> None:
        backend = MemoryBackend(max_entries=2, clock=clock)
        backend.set("a", 1, ttl_seconds=100)
        backend.set("b", 2, ttl_seconds=100)
        backend.set("a", 3, ttl_seconds=100)
        assert backend.size() == 2
        assert backend.get("a") == 3

    def test_reads_do_not_refresh_recency(self, clock: FakeClock) -> None:
        backend = MemoryBackend(max_entries=5, clock=clock)
        for i in range(5):
            backend.set(f"k{i}", i, ttl_seconds=100)
            clock.advance(1)
        backend.get("k0")
        backend.set("new", "x", ttl_seconds=100)
        assert backend.get("k0") is None


# --- Word cache ---


class TestWordCache:
    def test_set_then_get(self, cache: WordCache) -> None:
        key = batch_key(1, "A1", 3)
        cache.set(key, ["w1", "w2"])
        assert cache.get(key) == ["w1", "w2"]

    def test_default_ttl_per_kind(self, cache: WordCache, clock: FakeClock) -> None:
        cache.set(learned_words_key(1), ["w"])
        cache.set(word_count_key(1, "A1"), 42)
        clock.advance(901)
        assert cache.get(learned_words_key(1)) is None
        assert cache.get(word_count_key(1, "A1")) == 42

    def test_hit_and_miss_counters(self, cache: WordCache) -> None:
        cache.get("batch:1:A1:1")
        cache.set("batch:1:A1:1", [])
        cache.get("batch:1:A1:1")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["type"] == "memory"

    @pytest.mark.asyncio
    async def test_get_or_load_reads_through(self, cache: WordCache) -> None:
        calls = 0

        async def loader() -> int:
            nonlocal calls
            calls += 1
            return 42

        key = word_count_key(1, "A1")
        assert await cache.get_or_load(key, loader) == 42
        assert await cache.get_or_load(key, loader) == 42
        assert calls == 1

    def test_invalidate_batch(self, cache: WordCache) -> None:
        keys = [
            batch_key(1, "A1", 3),
            batch_stats_key(1, "A1"),
            user_words_key(1, "A1"),
            user_words_key(1),
            learned_words_key(1),
        ]
        untouched = [batch_key(1, "A1", 4), word_count_key(1, "A1"), batch_key(2, "A1", 3)]
        for key in keys + untouched:
            cache.set(key, "value")

        cache.invalidate_batch(1, "A1", 3)

        assert all(cache.get(key) is None for key in keys)
        assert all(cache.get(key) == "value" for key in untouched)

    def test_invalidate_user_covers_all_levels_and_batches(self, cache: WordCache) -> None:
        keys = [
            batch_key(1, "A1", 1),
            batch_key(1, "C2", 20),
            word_count_key(1, "B1"),
            batch_stats_key(1, "A2"),
            user_words_key(1, "C1"),
            user_words_key(1),
            learned_words_key(1),
        ]
        other = batch_key(2, "A1", 1)
        for key in [*keys, other]:
            cache.set(key, "value")

        cache.invalidate_user(1)

        assert all(cache.get(key) is None for key in keys)
        assert cache.get(other) == "value"

    def test_from_settings(self) -> None:
        settings = Settings(words_per_batch=25, words_per_level=100, cache_ttl_batch=60)
        cache = WordCache.from_settings(settings)
        assert cache.batches_per_level == 4
        assert cache.ttls[CacheKind.BATCH] == 60


class TestCacheFaults:
    def test_reads_and_writes_degrade_to_miss(self) -> None:
        cache = WordCache(backend=_failing_backend())
        cache.set(learned_words_key(1), ["w"])
        assert cache.get(learned_words_key(1)) is None

    def test_invalidation_raises_and_is_counted(self) -> None:
        cache = WordCache(backend=_failing_backend())
        with pytest.raises(CacheFault):
            cache.invalidate_batch(1, "A1", 1)
        with pytest.raises(CacheFault):
            cache.invalidate_user(1)
        assert cache.invalidation_failures == 2

    def test_delete_raises(self) -> None:
        cache = WordCache(backend=_failing_backend())
        with pytest.raises(CacheFault):
            cache.delete(batch_key(1, "A1", 1))


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, cache: WordCache) -> None:
        await cache.start()
        assert cache._cleanup_task is not None
        cache.set(user_words_key(1), ["w"])

        await cache.shutdown()

        assert cache._cleanup_task is None
        assert cache.get(user_words_key(1)) is None

    def test_cleanup_sweeps_expired(self, cache: WordCache, clock: FakeClock) -> None:
        cache.set(learned_words_key(1), ["w"])
        clock.advance(1000)
        assert cache.cleanup() == 1
