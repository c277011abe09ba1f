from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Keeps datetimes naive so they stay compatible with SQLite
    (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Lexibatch"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'lexibatch.db'}"
    debug: bool = False
    log_level: str = "INFO"

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_max_retries: int = 3
    anthropic_rate_limit_rpm: int = 50

    # Level / batch policy
    words_per_batch: int = 50
    words_per_level: int = 1000
    min_completion_fraction: float = 0.8

    # Word cache
    cache_max_entries: int = 1000
    cache_eviction_fraction: float = 0.2
    cache_cleanup_interval_seconds: float = 300.0
    cache_ttl_word_count: int = 3600  # 1 hour
    cache_ttl_user_words: int = 1800  # 30 minutes
    cache_ttl_batch: int = 1800
    cache_ttl_learned_words: int = 900  # 15 minutes
    cache_ttl_batch_stats: int = 900
    cache_ttl_generated_words: int = 7200  # 2 hours

    # Vocabulary generation
    generation_max_rounds: int = 3

    # Client-side request cache
    request_cache_max_size: int = 500
    request_cache_ttl_seconds: float = 300.0
    request_timeout_seconds: float = 10.0

    model_config = {"env_prefix": "LEXIBATCH_", "env_file": ".env"}


settings = Settings()
