"""Anthropic LLM client with rate limiting, retries and token accounting."""

import asyncio
import logging
import time
from collections import deque

import anthropic
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from backend.config import settings

logger = logging.getLogger(__name__)

# Transient API failures worth retrying
RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.InternalServerError,
)


class LLMClient:
    """Async wrapper around the Anthropic API.

    Requests are limited to ``anthropic_rate_limit_rpm`` per rolling minute;
    concurrent callers wait on a shared lock rather than bursting past it.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_rpm: int | None = None,
    ) -> None:
        self.client = anthropic.AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)
        self.model = model or settings.anthropic_model
        self.max_rpm = max_rpm or settings.anthropic_rate_limit_rpm
        self._request_timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    async def _enforce_rate_limit(self) -> None:
        async with self._lock:
            now = time.monotonic()
            while self._request_timestamps and now - self._request_timestamps[0] > 60:
                self._request_timestamps.popleft()
            if len(self._request_timestamps) >= self.max_rpm:
                sleep_time = 60 - (now - self._request_timestamps[0])
                if sleep_time > 0:
                    logger.info("Rate limit reached, sleeping %.1fs", sleep_time)
                    await asyncio.sleep(sleep_time)
            self._request_timestamps.append(time.monotonic())

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(settings.anthropic_max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def create_message(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> str:
        """Send a message to the LLM and return the response text."""
        await self._enforce_rate_limit()
        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = await self.client.messages.create(**kwargs)
        self.total_input_tokens += response.usage.input_tokens
        self.total_output_tokens += response.usage.output_tokens
        logger.debug(
            "Tokens used: %d in, %d out",
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return response.content[0].text

    def usage(self) -> dict[str, int]:
        return {
            "input_tokens": self.total_input_tokens,
            "output_tokens": self.total_output_tokens,
        }


# Lazy singleton so importing this module never needs an API key
_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Return the shared LLMClient, creating it on first call."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
