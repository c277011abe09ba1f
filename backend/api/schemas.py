"""Pydantic schemas for API request/response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# --- Words ---


class WordResponse(BaseModel):
    """A single vocabulary word."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    original: str
    translation: str
    learned: bool
    proficiency_level: str
    batch_number: int


class BatchSummary(BaseModel):
    """Counts and status for one batch in a level."""

    batch_number: int
    total_words: int
    learned_words: int
    percentage: int
    is_complete: bool  # exactly words_per_batch words
    can_advance: bool  # 80% rule
    is_current: bool


class BatchListResponse(BaseModel):
    level: str
    language: str
    current_batch: int
    total_batches: int
    words_per_batch: int
    batches: list[BatchSummary]


class BatchIntegrityResponse(BaseModel):
    is_valid: bool
    expected_words: int
    actual_words: int
    words_needed: int


class BatchDetailResponse(BaseModel):
    level: str
    batch_number: int
    learned_words: int
    percentage: int
    integrity: BatchIntegrityResponse
    words: list[WordResponse]


class WordCountResponse(BaseModel):
    level: str
    language: str
    count: int


class LearnedWordsResponse(BaseModel):
    count: int
    words: list[WordResponse]


class ValidateBatchRequest(BaseModel):
    """Request to check whether a batch is exactly full."""

    learner_id: int
    batch_number: int
    level: str | None = None  # defaults to the learner's current level


class GenerationResponse(BaseModel):
    level: str
    language: str
    created: int
    existing_words: int
    level_full: bool
    batch_numbers: list[int]


# --- Status updates ---


class WordStatusRequest(BaseModel):
    learned: bool


class StreakResponse(BaseModel):
    """Consecutive-day learning streak."""

    current_streak: int
    longest_streak: int
    last_active_date: datetime | None
    today_completed: bool


class WordStatusResponse(BaseModel):
    """Response after a learned-status change."""

    word: WordResponse
    changed: bool
    current_batch: int
    streak: StreakResponse | None = None


# --- Level progress ---


class LevelProgressItem(BaseModel):
    level: str
    name: str
    description: str
    learned_words: int
    total_words: int
    target_words: int
    percentage: float
    can_progress: bool
    is_completed: bool
    is_accessible: bool
    is_current: bool


class LevelProgressResponse(BaseModel):
    current_level: str
    next_level: str | None
    can_progress_to_next: bool
    levels: list[LevelProgressItem]


class LevelUpResponse(BaseModel):
    """Response after a successful level-up."""

    previous_level: str
    new_level: str
    learned_words: int
