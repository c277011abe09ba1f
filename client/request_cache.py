"""Client-side read-through cache with in-flight request coalescing.

Concurrent callers asking for the same key share one underlying request: the
first caller starts it as an asyncio task, later callers await the same task.
A successful result is cached for its TTL; a failure is delivered to every
waiting caller and then forgotten so the next call retries.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import math
import re
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from backend.errors import RequestTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

EVICTION_FRACTION = 0.2


@dataclass
class _CachedResponse:
    value: Any
    expires_at: float
    written_at: float


def make_cache_key(endpoint: str, method: str = "GET", body: Any = None) -> str:
    """Build a request signature from method, endpoint and JSON body."""
    key = f"{method.upper()}:{endpoint}"
    if body is not None:
        key += ":" + json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return key


class RequestCache:
    def __init__(
        self,
        max_size: int = 500,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _CachedResponse] = {}
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self.hits = 0
        self.misses = 0
        self.coalesced = 0

    async def dedupe(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """Return a fresh cached value, join an in-flight request, or start one."""
        entry = self._entries.get(key)
        if entry is not None:
            if entry.expires_at > self._clock():
                self.hits += 1
                logger.debug("Request cache hit: %s", key)
                return entry.value
            del self._entries[key]

        task = self._pending.get(key)
        if task is not None:
            self.coalesced += 1
            logger.debug("Joining in-flight request: %s", key)
        else:
            self.misses += 1
            logger.debug("New request: %s", key)
            task = asyncio.ensure_future(fetch())
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._settle, key, ttl))

        # Shielded so one caller giving up does not cancel the shared request
        return await asyncio.shield(task)

    def _settle(self, key: str, ttl: float | None, task: asyncio.Task[Any]) -> None:
        registered = self._pending.get(key) is task
        if registered:
            del self._pending[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("Request failed, not cached: %s (%s)", key, error)
            return
        # An invalidation while in flight unregisters the task; its result is stale
        if registered:
            self._store(key, task.result(), self.default_ttl if ttl is None else ttl)

    def _store(self, key: str, value: Any, ttl: float) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict()
        now = self._clock()
        self._entries[key] = _CachedResponse(value=value, expires_at=now + ttl, written_at=now)

    def _evict(self) -> None:
        count = max(1, math.floor(self.max_size * EVICTION_FRACTION))
        oldest = sorted(self._entries, key=lambda k: self._entries[k].written_at)[:count]
        for key in oldest:
            del self._entries[key]
        logger.debug("Request cache evicted %d oldest entries", len(oldest))

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return entry.value

    def invalidate(self, pattern: str | re.Pattern[str]) -> int:
        """Drop cached entries and in-flight markers whose key matches.

        A plain string matches as a substring; a compiled pattern is searched.
        Returns the number of cached entries removed.
        """
        matches = _key_matcher(pattern)

        stale = [key for key in self._entries if matches(key)]
        for key in stale:
            del self._entries[key]
        for key in [key for key in self._pending if matches(key)]:
            del self._pending[key]

        if stale:
            logger.info("Invalidated %d cached responses matching %s", len(stale), pattern)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        self._pending.clear()

    def stats(self) -> dict[str, int]:
        return {
            "size": len(self._entries),
            "pending": len(self._pending),
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
        }


def _key_matcher(pattern: str | re.Pattern[str]) -> Callable[[str], bool]:
    if isinstance(pattern, re.Pattern):
        return lambda key: pattern.search(key) is not None
    return lambda key: pattern in key


def _discard_outcome(future: asyncio.Future[Any]) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Timed-out request later failed: %s", future.exception())


async def with_timeout(awaitable: Awaitable[T], seconds: float) -> T:
    """Await with a deadline.

    On timeout the underlying operation keeps running and its late result is
    discarded; the caller must treat the outcome as unknown.

    Raises:
        RequestTimeout: If the operation did not settle within ``seconds``.
    """
    future = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(future), timeout=seconds)
    except asyncio.TimeoutError:
        future.add_done_callback(_discard_outcome)
        raise RequestTimeout(seconds) from None


class StaleResponseGuard:
    """Per-resource request tokens for dropping out-of-order responses.

    Each request for a resource takes a fresh token; when a response arrives,
    it is applied only if its token is still the latest for that resource.
    """

    def __init__(self) -> None:
        self._latest: dict[str, str] = {}

    def begin(self, resource: str) -> str:
        token = uuid.uuid4().hex
        self._latest[resource] = token
        return token

    def is_current(self, resource: str, token: str) -> bool:
        return self._latest.get(resource) == token
