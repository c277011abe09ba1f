"""Process-wide service container and FastAPI dependency providers.

The container owns the long-lived collaborators (policy, word cache, content
generator) and is attached to ``app.state`` at startup. Per-request services
are built from it together with a fresh database session.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.cache.word_cache import WordCache
from backend.config import Settings
from backend.database import get_session
from backend.progression.policy import LevelPolicy
from backend.progression.service import ProgressionService
from backend.progression.streak import StreakTracker
from backend.repository import WordRepository
from ingestion.generator import LLMWordGenerator, WordGenerator
from ingestion.pipeline import VocabularyIngestion

logger = logging.getLogger(__name__)


def _default_generator() -> WordGenerator:
    from backend.llm_client import get_llm_client

    return LLMWordGenerator(get_llm_client())


@dataclass
class ServiceContainer:
    settings: Settings
    policy: LevelPolicy
    word_cache: WordCache
    generator_factory: Callable[[], WordGenerator] = _default_generator

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        generator_factory: Callable[[], WordGenerator] | None = None,
    ) -> ServiceContainer:
        return cls(
            settings=settings,
            policy=LevelPolicy.from_settings(settings),
            word_cache=WordCache.from_settings(settings),
            generator_factory=generator_factory or _default_generator,
        )

    async def start(self) -> None:
        await self.word_cache.start()
        logger.info(
            "Services started: %d words per batch, %d per level",
            self.policy.words_per_batch,
            self.policy.words_per_level,
        )

    async def shutdown(self) -> None:
        await self.word_cache.shutdown()


# --- Dependency providers ---


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_repository(db: AsyncSession = Depends(get_session)) -> WordRepository:
    return WordRepository(db)


def get_progression_service(
    db: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
) -> ProgressionService:
    return ProgressionService(
        repo=WordRepository(db),
        cache=container.word_cache,
        policy=container.policy,
        streaks=StreakTracker(db),
    )


def get_ingestion(
    db: AsyncSession = Depends(get_session),
    container: ServiceContainer = Depends(get_container),
) -> VocabularyIngestion:
    return VocabularyIngestion(
        repo=WordRepository(db),
        cache=container.word_cache,
        policy=container.policy,
        generator=container.generator_factory(),
        max_rounds=container.settings.generation_max_rounds,
    )
