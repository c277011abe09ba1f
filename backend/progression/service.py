"""Progression service: level-ups, learned-word updates and progress reports.

Coordinates the level policy, persistence, the word cache and the streak
tracker. Ordering rule for every mutation: the write is committed first, and
only then are the affected cache entries invalidated. Invalidating before the
write is durable would let a concurrent read repopulate the cache with the
pre-mutation state.

Gating decisions (level-up eligibility, current batch) always count words
directly from persistence, never through the cache.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from backend.cache.word_cache import WordCache
from backend.errors import (
    CacheFault,
    InsufficientProgress,
    LearnerNotFound,
    NoNextLevel,
    WordNotFound,
)
from backend.models.learner import Learner
from backend.models.word import Word
from backend.progression.policy import PROFICIENCY_LEVELS, LevelPolicy, next_level
from backend.progression.streak import StreakData, StreakTracker
from backend.repository import WordRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelUp:
    previous_level: str
    new_level: str
    learned_words: int


LevelUpOutcome = LevelUp | InsufficientProgress | NoNextLevel


@dataclass
class WordStatusResult:
    """Outcome of a learned-status update."""

    word: Word
    changed: bool
    current_batch: int
    streak: StreakData | None = None


@dataclass
class LevelProgressEntry:
    level: str
    learned_words: int
    total_words: int
    target_words: int
    percentage: float
    can_progress: bool
    is_completed: bool
    is_accessible: bool
    is_current: bool


@dataclass
class LevelProgressReport:
    current_level: str
    next_level: str | None
    can_progress_to_next: bool
    levels: list[LevelProgressEntry] = field(default_factory=list)


class ProgressionService:
    def __init__(
        self,
        repo: WordRepository,
        cache: WordCache,
        policy: LevelPolicy,
        streaks: StreakTracker | None = None,
    ) -> None:
        self.repo = repo
        self.cache = cache
        self.policy = policy
        self.streaks = streaks

    async def _require_learner(self, learner_id: int) -> Learner:
        learner = await self.repo.find_learner(learner_id)
        if learner is None:
            raise LearnerNotFound(learner_id)
        return learner

    async def _learned_in_level(self, learner: Learner, level: str) -> int:
        return await self.repo.count_words(
            learner.id, level, learner.learning_language, learned=True
        )

    def _invalidate(self, action: Callable[..., None], *args: object) -> None:
        """Run a cache invalidation; failures are logged, never raised."""
        try:
            action(*args)
        except CacheFault as e:
            logger.warning("Cache invalidation %s%r failed: %s", action.__name__, args, e)

    # --- Level progression ---

    async def progress_level(self, learner_id: int) -> LevelUpOutcome:
        """Move the learner to the next level if the current one is mastered."""
        learner = await self._require_learner(learner_id)
        current_level = learner.current_level
        target = next_level(current_level)
        if target is None:
            return NoNextLevel(level=current_level)

        learned = await self._learned_in_level(learner, current_level)
        if not self.policy.can_progress_level(current_level, learned):
            return InsufficientProgress(
                level=current_level,
                required=self.policy.words_per_level,
                current=learned,
            )

        learned_in_target = await self._learned_in_level(learner, target)
        await self.repo.update_learner(
            learner,
            current_level=target,
            current_batch=self.policy.current_batch(learned_in_target),
        )
        self._invalidate(self.cache.invalidate_user, learner.id)

        logger.info(
            "Learner %d progressed %s -> %s (%d words learned)",
            learner.id,
            current_level,
            target,
            learned,
        )
        return LevelUp(previous_level=current_level, new_level=target, learned_words=learned)

    # --- Word status ---

    async def mark_word_learned(self, learner_id: int, word_id: int) -> WordStatusResult:
        """Mark a word learned. Re-marking a learned word is a no-op."""
        return await self.update_word_status(learner_id, word_id, learned=True)

    async def update_word_status(
        self, learner_id: int, word_id: int, learned: bool
    ) -> WordStatusResult:
        learner = await self._require_learner(learner_id)
        word = await self.repo.find_word(learner_id, word_id)
        if word is None:
            raise WordNotFound(word_id, learner_id)

        if word.learned == learned:
            return WordStatusResult(word=word, changed=False, current_batch=learner.current_batch)

        await self.repo.update_word_learned(word, learned)
        current_batch = await self.sync_current_batch(learner, word)
        self._invalidate(
            self.cache.invalidate_batch, learner.id, word.proficiency_level, word.batch_number
        )

        streak = None
        if learned and self.streaks is not None:
            streak = await self.streaks.record_activity(learner.id)

        return WordStatusResult(word=word, changed=True, current_batch=current_batch, streak=streak)

    async def sync_current_batch(self, learner: Learner, word: Word | None = None) -> int:
        """Recompute and persist the learner's working batch in the current level.

        Words from other levels or languages do not move the current batch.
        """
        if word is not None and (
            word.proficiency_level != learner.current_level
            or word.learning_language != learner.learning_language
        ):
            return learner.current_batch

        learned = await self._learned_in_level(learner, learner.current_level)
        batch = self.policy.current_batch(learned)
        if batch != learner.current_batch:
            previous = learner.current_batch
            await self.repo.update_learner(learner, current_batch=batch)
            logger.info(
                "Learner %d moved from batch %d to %d in %s",
                learner.id,
                previous,
                batch,
                learner.current_level,
            )
        return batch

    # --- Reporting ---

    async def get_level_progress(self, learner_id: int) -> LevelProgressReport:
        learner = await self._require_learner(learner_id)
        entries: list[LevelProgressEntry] = []

        for level in PROFICIENCY_LEVELS:
            learned = await self._learned_in_level(learner, level)
            total = await self.repo.count_words(learner.id, level, learner.learning_language)
            progress = self.policy.level_progress(level, learned)
            entries.append(
                LevelProgressEntry(
                    level=level,
                    learned_words=learned,
                    total_words=total,
                    target_words=self.policy.words_per_level,
                    percentage=round(progress.percentage, 1),
                    can_progress=self.policy.can_progress_level(level, learned),
                    is_completed=progress.is_completed,
                    is_accessible=self.policy.is_level_accessible(level, learner.current_level),
                    is_current=level == learner.current_level,
                )
            )

        current = next(e for e in entries if e.is_current)
        upcoming = next_level(learner.current_level)
        return LevelProgressReport(
            current_level=learner.current_level,
            next_level=upcoming,
            can_progress_to_next=upcoming is not None and current.can_progress,
            levels=entries,
        )
