"""Vocabulary ingestion: generate -> deduplicate -> assign batches -> persist.

A generation run tops up the learner's current level so that the last batch
is exactly full. Output is validated and deduplicated before anything is
written, and the new words are persisted in a single transaction, so a failed
run leaves the learner's vocabulary untouched.
"""

import logging
from dataclasses import dataclass, field

from backend.cache.word_cache import WordCache, generated_words_key
from backend.errors import CacheFault, GenerationMalformed, LearnerNotFound
from backend.models.learner import Learner
from backend.models.word import Word
from backend.progression.policy import LevelPolicy
from backend.repository import WordRepository
from ingestion.dedup import HasOriginal, filter_duplicates_advanced
from ingestion.generator import GeneratedWord, WordGenerator

logger = logging.getLogger(__name__)

# Most recent known words listed in the prompt when the shared pool is not used
AVOID_LIST_SIZE = 200


@dataclass
class GenerationResult:
    """Outcome of one generation run."""

    learner_id: int
    level: str
    language: str
    created: int = 0
    existing_words: int = 0
    level_full: bool = False
    rounds: int = 0
    duplicates_filtered: int = 0
    batch_numbers: list[int] = field(default_factory=list)


class VocabularyIngestion:
    def __init__(
        self,
        repo: WordRepository,
        cache: WordCache,
        policy: LevelPolicy,
        generator: WordGenerator,
        max_rounds: int = 3,
    ) -> None:
        self.repo = repo
        self.cache = cache
        self.policy = policy
        self.generator = generator
        self.max_rounds = max_rounds

    def words_to_generate(self, existing_total: int) -> int:
        """Words needed to fill the last batch exactly (or one new batch)."""
        remaining_capacity = self.policy.words_per_level - existing_total
        if remaining_capacity <= 0:
            return 0
        partial = existing_total % self.policy.words_per_batch
        target = self.policy.words_per_batch - partial
        return min(target, remaining_capacity)

    async def generate_batch(self, learner_id: int) -> GenerationResult:
        """Generate and persist the next batch of words for the learner's current level.

        Raises:
            LearnerNotFound: If the learner does not exist.
            GenerationMalformed: If the generator output is invalid or too few
                unique words survive deduplication. Nothing is persisted.
        """
        learner = await self.repo.find_learner(learner_id)
        if learner is None:
            raise LearnerNotFound(learner_id)

        level = learner.current_level
        language = learner.learning_language
        existing = await self.repo.list_words(learner_id, level=level, language=language)
        result = GenerationResult(
            learner_id=learner_id,
            level=level,
            language=language,
            existing_words=len(existing),
        )

        target = self.words_to_generate(len(existing))
        if target == 0:
            logger.info("Learner %d already has a full %s vocabulary", learner_id, level)
            result.level_full = True
            return result

        accepted: list[GeneratedWord] = []
        for round_number in range(self.max_rounds):
            needed = target - len(accepted)
            if needed <= 0:
                break
            result.rounds += 1
            known: list[HasOriginal] = [*existing, *accepted]
            candidates = await self._candidates(learner, needed, known, first_round=round_number == 0)
            unique = filter_duplicates_advanced(candidates, known, user_word_count=len(known))
            result.duplicates_filtered += len(candidates) - len(unique)
            accepted.extend(unique[:needed])

        if len(accepted) < target:
            raise GenerationMalformed(
                f"Only {len(accepted)} of {target} generated words were unique "
                f"after {result.rounds} rounds"
            )

        words = [
            Word(
                learner_id=learner_id,
                original=generated.original,
                translation=generated.translation,
                learning_language=language,
                native_language=learner.native_language,
                proficiency_level=level,
                batch_number=self.policy.batch_for_position(len(existing) + i),
                learned=False,
            )
            for i, generated in enumerate(accepted)
        ]
        result.created = await self.repo.create_words(words)
        result.batch_numbers = sorted({word.batch_number for word in words})

        try:
            self.cache.invalidate_user(learner_id)
        except CacheFault as e:
            logger.warning("Cache invalidation after generation failed for learner %d: %s", learner_id, e)

        logger.info(
            "Generated %d %s words at %s for learner %d (batches %s, %d duplicates filtered, %d rounds)",
            result.created,
            language,
            level,
            learner_id,
            result.batch_numbers,
            result.duplicates_filtered,
            result.rounds,
        )
        return result

    async def _candidates(
        self,
        learner: Learner,
        count: int,
        known: list[HasOriginal],
        first_round: bool,
    ) -> list[GeneratedWord]:
        """Ask the generator for ``count`` words.

        The first round of a learner's first batch in a level may be served
        from the generated-words pool shared by learners with the same
        language pair. Otherwise the prompt lists the most recent known words
        (saved and accepted so far) so the generator avoids them.
        """
        language = learner.learning_language
        level = learner.current_level

        if first_round and not known:
            key = generated_words_key(language, learner.native_language, level, count)
            pooled = self.cache.get(key)
            if pooled is not None:
                logger.debug("Serving %d %s %s words from the generated pool", count, language, level)
                return list(pooled)
            words = await self.generator.generate(language, learner.native_language, level, count)
            self.cache.set(key, words)
            return words

        avoid = [word.original for word in known[-AVOID_LIST_SIZE:]]
        return await self.generator.generate(
            language, learner.native_language, level, count, avoid=avoid
        )
