"""API routes for vocabulary words and batches."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.api.schemas import (
    BatchDetailResponse,
    BatchIntegrityResponse,
    BatchListResponse,
    BatchSummary,
    GenerationResponse,
    LearnedWordsResponse,
    StreakResponse,
    ValidateBatchRequest,
    WordCountResponse,
    WordResponse,
    WordStatusRequest,
    WordStatusResponse,
)
from backend.cache.word_cache import (
    batch_key,
    batch_stats_key,
    learned_words_key,
    word_count_key,
)
from backend.container import (
    ServiceContainer,
    get_container,
    get_ingestion,
    get_progression_service,
    get_repository,
)
from backend.errors import GenerationMalformed, NotFoundError
from backend.models.learner import Learner
from backend.progression.policy import level_index
from backend.progression.service import ProgressionService, WordStatusResult
from backend.repository import WordRepository
from ingestion.pipeline import VocabularyIngestion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/words", tags=["words"])


async def _get_learner(repo: WordRepository, learner_id: int) -> Learner:
    learner = await repo.find_learner(learner_id)
    if learner is None:
        raise HTTPException(status_code=404, detail=f"Learner {learner_id} not found")
    return learner


def _resolve_level(learner: Learner, level: str | None) -> str:
    level = level or learner.current_level
    try:
        level_index(level)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return level


def _status_response(result: WordStatusResult) -> WordStatusResponse:
    streak = None
    if result.streak is not None:
        streak = StreakResponse(
            current_streak=result.streak.current_streak,
            longest_streak=result.streak.longest_streak,
            last_active_date=result.streak.last_active_date,
            today_completed=result.streak.today_completed,
        )
    return WordStatusResponse(
        word=WordResponse.model_validate(result.word),
        changed=result.changed,
        current_batch=result.current_batch,
        streak=streak,
    )


@router.get("/batches", response_model=BatchListResponse)
async def list_batches(
    learner_id: int,
    level: str | None = None,
    repo: WordRepository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> BatchListResponse:
    """List the batches of a level with their completion status."""
    learner = await _get_learner(repo, learner_id)
    level = _resolve_level(learner, level)
    policy = container.policy

    async def load() -> BatchListResponse:
        counts = await repo.batch_counts(learner.id, level, learner.learning_language)
        batches = [
            BatchSummary(
                batch_number=count.batch_number,
                total_words=count.total_words,
                learned_words=count.learned_words,
                percentage=round(policy.batch_progress(count.learned_words).percentage),
                is_complete=policy.validate_batch_integrity(count.total_words).is_valid,
                can_advance=policy.can_advance_batch(count.total_words, count.learned_words),
                is_current=(
                    level == learner.current_level
                    and count.batch_number == learner.current_batch
                ),
            )
            for count in counts
        ]
        return BatchListResponse(
            level=level,
            language=learner.learning_language,
            current_batch=learner.current_batch,
            total_batches=policy.batches_per_level,
            words_per_batch=policy.words_per_batch,
            batches=batches,
        )

    return await container.word_cache.get_or_load(batch_stats_key(learner.id, level), load)


@router.get("/batch/{batch_number}", response_model=BatchDetailResponse)
async def get_batch(
    batch_number: int,
    learner_id: int,
    level: str | None = None,
    repo: WordRepository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> BatchDetailResponse:
    """Get the words of one batch."""
    policy = container.policy
    if not 1 <= batch_number <= policy.batches_per_level:
        raise HTTPException(
            status_code=400,
            detail=f"Batch number must be between 1 and {policy.batches_per_level}",
        )
    learner = await _get_learner(repo, learner_id)
    level = _resolve_level(learner, level)

    async def load() -> BatchDetailResponse:
        words = await repo.list_words(
            learner.id, level=level, language=learner.learning_language, batch_number=batch_number
        )
        learned = sum(1 for word in words if word.learned)
        integrity = policy.validate_batch_integrity(len(words))
        return BatchDetailResponse(
            level=level,
            batch_number=batch_number,
            learned_words=learned,
            percentage=round(policy.batch_progress(learned).percentage),
            integrity=BatchIntegrityResponse(
                is_valid=integrity.is_valid,
                expected_words=integrity.expected_words,
                actual_words=integrity.actual_words,
                words_needed=integrity.words_needed,
            ),
            words=[WordResponse.model_validate(word) for word in words],
        )

    return await container.word_cache.get_or_load(
        batch_key(learner.id, level, batch_number), load
    )


@router.get("/count", response_model=WordCountResponse)
async def count_words(
    learner_id: int,
    level: str | None = None,
    repo: WordRepository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> WordCountResponse:
    """Number of words in a level. For display only; may be briefly stale."""
    learner = await _get_learner(repo, learner_id)
    level = _resolve_level(learner, level)

    async def load() -> int:
        return await repo.count_words(learner.id, level, learner.learning_language)

    count = await container.word_cache.get_or_load(word_count_key(learner.id, level), load)
    return WordCountResponse(level=level, language=learner.learning_language, count=count)


@router.get("/learned", response_model=LearnedWordsResponse)
async def list_learned_words(
    learner_id: int,
    repo: WordRepository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> LearnedWordsResponse:
    """All words the learner has marked learned in their learning language."""
    learner = await _get_learner(repo, learner_id)

    async def load() -> LearnedWordsResponse:
        words = await repo.list_words(learner.id, language=learner.learning_language, learned=True)
        return LearnedWordsResponse(
            count=len(words),
            words=[WordResponse.model_validate(word) for word in words],
        )

    return await container.word_cache.get_or_load(learned_words_key(learner.id), load)


@router.post("/validate-batch", response_model=BatchIntegrityResponse)
async def validate_batch(
    request: ValidateBatchRequest,
    repo: WordRepository = Depends(get_repository),
    container: ServiceContainer = Depends(get_container),
) -> BatchIntegrityResponse:
    """Check whether a batch holds exactly the configured number of words."""
    learner = await _get_learner(repo, request.learner_id)
    level = _resolve_level(learner, request.level)
    actual = await repo.count_words(
        learner.id, level, learner.learning_language, batch_number=request.batch_number
    )
    integrity = container.policy.validate_batch_integrity(actual)
    return BatchIntegrityResponse(
        is_valid=integrity.is_valid,
        expected_words=integrity.expected_words,
        actual_words=integrity.actual_words,
        words_needed=integrity.words_needed,
    )


@router.post("/generate", response_model=GenerationResponse)
async def generate_words(
    learner_id: int,
    ingestion: VocabularyIngestion = Depends(get_ingestion),
) -> GenerationResponse:
    """Generate the next batch of words for the learner's current level."""
    try:
        result = await ingestion.generate_batch(learner_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except GenerationMalformed as e:
        logger.warning("Word generation failed for learner %d: %s", learner_id, e)
        raise HTTPException(status_code=502, detail=f"Word generation failed: {e}") from e

    return GenerationResponse(
        level=result.level,
        language=result.language,
        created=result.created,
        existing_words=result.existing_words,
        level_full=result.level_full,
        batch_numbers=result.batch_numbers,
    )


@router.get("/{word_id}", response_model=WordResponse)
async def get_word(
    word_id: int,
    learner_id: int,
    repo: WordRepository = Depends(get_repository),
) -> WordResponse:
    word = await repo.find_word(learner_id, word_id)
    if word is None:
        raise HTTPException(status_code=404, detail=f"Word {word_id} not found")
    return WordResponse.model_validate(word)


@router.patch("/{word_id}/status", response_model=WordStatusResponse)
async def update_word_status(
    word_id: int,
    learner_id: int,
    request: WordStatusRequest,
    service: ProgressionService = Depends(get_progression_service),
) -> WordStatusResponse:
    """Set a word's learned status."""
    try:
        result = await service.update_word_status(learner_id, word_id, request.learned)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _status_response(result)


@router.post("/{word_id}/learn", response_model=WordStatusResponse)
async def mark_word_learned(
    word_id: int,
    learner_id: int,
    service: ProgressionService = Depends(get_progression_service),
) -> WordStatusResponse:
    """Mark a word learned. Marking an already-learned word changes nothing."""
    try:
        result = await service.mark_word_learned(learner_id, word_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _status_response(result)
