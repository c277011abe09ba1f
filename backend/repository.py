"""Persistence access for learners and their words.

Every write commits before returning, so callers can rely on the change being
durable when they go on to invalidate caches.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.learner import Learner
from backend.models.word import Word

logger = logging.getLogger(__name__)


@dataclass
class BatchCount:
    """Total and learned word counts for one batch."""

    batch_number: int
    total_words: int
    learned_words: int


class WordRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # --- Learners ---

    async def find_learner(self, learner_id: int) -> Learner | None:
        return await self.session.get(Learner, learner_id)

    async def update_learner(self, learner: Learner, **fields: object) -> Learner:
        for name, value in fields.items():
            setattr(learner, name, value)
        await self.session.commit()
        return learner

    # --- Words ---

    async def find_word(self, learner_id: int, word_id: int) -> Word | None:
        """Return the word only if it belongs to the learner."""
        stmt = select(Word).where(and_(Word.id == word_id, Word.learner_id == learner_id))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def update_word_learned(self, word: Word, learned: bool) -> Word:
        word.learned = learned
        await self.session.commit()
        return word

    async def count_words(
        self,
        learner_id: int,
        level: str,
        language: str,
        learned: bool | None = None,
        batch_number: int | None = None,
    ) -> int:
        conditions = [
            Word.learner_id == learner_id,
            Word.proficiency_level == level,
            Word.learning_language == language,
        ]
        if learned is not None:
            conditions.append(Word.learned.is_(learned))
        if batch_number is not None:
            conditions.append(Word.batch_number == batch_number)
        stmt = select(func.count(Word.id)).where(and_(*conditions))
        return (await self.session.execute(stmt)).scalar() or 0

    async def list_words(
        self,
        learner_id: int,
        level: str | None = None,
        language: str | None = None,
        batch_number: int | None = None,
        learned: bool | None = None,
    ) -> list[Word]:
        """List words in creation order, optionally narrowed to a partition or batch."""
        conditions = [Word.learner_id == learner_id]
        if level is not None:
            conditions.append(Word.proficiency_level == level)
        if language is not None:
            conditions.append(Word.learning_language == language)
        if batch_number is not None:
            conditions.append(Word.batch_number == batch_number)
        if learned is not None:
            conditions.append(Word.learned.is_(learned))
        stmt = select(Word).where(and_(*conditions)).order_by(Word.created_at.asc(), Word.id.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def batch_counts(self, learner_id: int, level: str, language: str) -> list[BatchCount]:
        """Total and learned counts per batch, ordered by batch number."""
        stmt = (
            select(
                Word.batch_number,
                func.count(Word.id),
                func.sum(case((Word.learned.is_(True), 1), else_=0)),
            )
            .where(
                and_(
                    Word.learner_id == learner_id,
                    Word.proficiency_level == level,
                    Word.learning_language == language,
                )
            )
            .group_by(Word.batch_number)
            .order_by(Word.batch_number.asc())
        )
        result = await self.session.execute(stmt)
        return [
            BatchCount(batch_number=row[0], total_words=row[1], learned_words=int(row[2] or 0))
            for row in result.all()
        ]

    async def create_words(self, words: list[Word]) -> int:
        """Insert all words in a single transaction. Nothing is kept on failure."""
        if not words:
            return 0
        try:
            self.session.add_all(words)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.debug("Persisted %d words", len(words))
        return len(words)
