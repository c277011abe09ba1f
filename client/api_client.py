"""Async HTTP client for the vocabulary API.

Reads go through a ``RequestCache`` so identical concurrent requests share one
HTTP call and repeated reads are served locally until their TTL expires.
Mutations invalidate the affected endpoint families afterwards. Every call
is bounded by ``with_timeout``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from backend.config import settings
from backend.errors import LexibatchError
from client.request_cache import RequestCache, StaleResponseGuard, make_cache_key, with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

WORDS_FAMILY = "/api/words"
LEARNERS_FAMILY = "/api/learners"


class ApiError(LexibatchError):
    """The server answered with an error status."""

    def __init__(self, status_code: int, detail: Any) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class VocabularyApiClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        cache: RequestCache | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.http = http
        self.cache = cache or RequestCache(
            max_size=settings.request_cache_max_size,
            default_ttl=settings.request_cache_ttl_seconds,
        )
        self.timeout_seconds = timeout_seconds or settings.request_timeout_seconds
        self.guard = StaleResponseGuard()

    @classmethod
    def connect(cls, base_url: str, **kwargs: Any) -> VocabularyApiClient:
        return cls(httpx.AsyncClient(base_url=base_url), **kwargs)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> VocabularyApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Transport ---

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.http.request(method, path, **kwargs)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            detail = body.get("detail", body) if isinstance(body, dict) else body
            raise ApiError(response.status_code, detail)
        return response.json()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        key = make_cache_key(str(httpx.URL(path, params=params)))
        return await with_timeout(
            self.cache.dedupe(key, lambda: self._send("GET", path, params=params)),
            self.timeout_seconds,
        )

    async def _mutate(
        self,
        method: str,
        path: str,
        families: tuple[str, ...] = (WORDS_FAMILY,),
        **kwargs: Any,
    ) -> Any:
        try:
            return await with_timeout(self._send(method, path, **kwargs), self.timeout_seconds)
        finally:
            # Also after a timeout: the write may still have happened
            for family in families:
                self.cache.invalidate(family)

    async def latest(self, resource: str, fetch: Callable[[], Awaitable[T]]) -> T | None:
        """Run ``fetch`` but return None if a newer call for ``resource`` started meanwhile."""
        token = self.guard.begin(resource)
        result = await fetch()
        if not self.guard.is_current(resource, token):
            logger.debug("Dropping stale response for %s", resource)
            return None
        return result

    # --- Words ---

    async def list_batches(self, learner_id: int, level: str | None = None) -> dict:
        return await self._get(f"{WORDS_FAMILY}/batches", {"learner_id": learner_id, "level": level})

    async def get_batch(self, learner_id: int, batch_number: int, level: str | None = None) -> dict:
        return await self._get(
            f"{WORDS_FAMILY}/batch/{batch_number}", {"learner_id": learner_id, "level": level}
        )

    async def count_words(self, learner_id: int, level: str | None = None) -> int:
        data = await self._get(f"{WORDS_FAMILY}/count", {"learner_id": learner_id, "level": level})
        return data["count"]

    async def learned_words(self, learner_id: int) -> dict:
        return await self._get(f"{WORDS_FAMILY}/learned", {"learner_id": learner_id})

    async def get_word(self, learner_id: int, word_id: int) -> dict:
        return await self._get(f"{WORDS_FAMILY}/{word_id}", {"learner_id": learner_id})

    async def validate_batch(
        self, learner_id: int, batch_number: int, level: str | None = None
    ) -> dict:
        body = {"learner_id": learner_id, "batch_number": batch_number, "level": level}
        return await with_timeout(
            self._send("POST", f"{WORDS_FAMILY}/validate-batch", json=body),
            self.timeout_seconds,
        )

    async def generate_words(self, learner_id: int) -> dict:
        return await self._mutate(
            "POST", f"{WORDS_FAMILY}/generate", params={"learner_id": learner_id}
        )

    async def update_word_status(self, learner_id: int, word_id: int, learned: bool) -> dict:
        return await self._mutate(
            "PATCH",
            f"{WORDS_FAMILY}/{word_id}/status",
            families=(WORDS_FAMILY, LEARNERS_FAMILY),
            params={"learner_id": learner_id},
            json={"learned": learned},
        )

    async def mark_word_learned(self, learner_id: int, word_id: int) -> dict:
        return await self._mutate(
            "POST",
            f"{WORDS_FAMILY}/{word_id}/learn",
            families=(WORDS_FAMILY, LEARNERS_FAMILY),
            params={"learner_id": learner_id},
        )

    # --- Progress ---

    async def level_progress(self, learner_id: int) -> dict:
        return await self._get(f"{LEARNERS_FAMILY}/{learner_id}/level-progress")

    async def progress_level(self, learner_id: int) -> dict:
        return await self._mutate(
            "POST",
            f"{LEARNERS_FAMILY}/{learner_id}/level-progress",
            families=(WORDS_FAMILY, LEARNERS_FAMILY),
        )

    async def streak(self, learner_id: int) -> dict:
        return await self._get(f"{LEARNERS_FAMILY}/{learner_id}/streak")
