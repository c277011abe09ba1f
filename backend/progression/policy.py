"""Level and batch policy.

Pure arithmetic over the process-wide configuration constants. Vocabulary
inside a proficiency level is split into fixed-size batches; two different
gates control movement:

- Batch advance is a soft pacing gate: 80% of the current batch learned.
- Level advance is a hard mastery gate: every word of the level learned.
"""

import math
from dataclasses import dataclass

from backend.config import Settings
from backend.errors import LevelNotFound

PROFICIENCY_LEVELS: tuple[str, ...] = ("A1", "A2", "B1", "B2", "C1", "C2")

# Levels that are viewable regardless of where the learner currently is
ALWAYS_ACCESSIBLE_LEVELS = PROFICIENCY_LEVELS[:2]

LEVEL_DETAILS: dict[str, dict[str, str]] = {
    "A1": {"name": "Beginner", "description": "Basic everyday expressions and simple phrases"},
    "A2": {"name": "Elementary", "description": "Common expressions and routine information"},
    "B1": {"name": "Intermediate", "description": "Work, school, leisure topics and familiar matters"},
    "B2": {"name": "Upper Intermediate", "description": "Complex topics and abstract ideas"},
    "C1": {"name": "Advanced", "description": "Wide range of demanding topics and implicit meaning"},
    "C2": {"name": "Proficient", "description": "Virtually everything heard or read with ease"},
}


def level_index(level: str) -> int:
    """Position of a level in the ordered sequence."""
    try:
        return PROFICIENCY_LEVELS.index(level)
    except ValueError:
        raise LevelNotFound(level) from None


def next_level(level: str) -> str | None:
    """Return the following level, or None at the ceiling."""
    idx = level_index(level)
    return PROFICIENCY_LEVELS[idx + 1] if idx + 1 < len(PROFICIENCY_LEVELS) else None


def previous_level(level: str) -> str | None:
    """Return the preceding level, or None at the floor."""
    idx = level_index(level)
    return PROFICIENCY_LEVELS[idx - 1] if idx > 0 else None


@dataclass(frozen=True)
class BatchIntegrity:
    """Whether a batch holds exactly the configured number of words."""

    is_valid: bool
    expected_words: int
    actual_words: int
    words_needed: int


@dataclass(frozen=True)
class Progress:
    """Completion summary for a level or a batch."""

    percentage: float
    words_remaining: int
    is_completed: bool


@dataclass(frozen=True)
class LevelPolicy:
    """Batch numbering and progression gates."""

    words_per_batch: int = 50
    words_per_level: int = 1000
    min_completion_fraction: float = 0.8

    def __post_init__(self) -> None:
        if self.words_per_batch <= 0 or self.words_per_level <= 0:
            raise ValueError("words_per_batch and words_per_level must be positive")
        if not 0 < self.min_completion_fraction <= 1:
            raise ValueError("min_completion_fraction must be in (0, 1]")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LevelPolicy":
        return cls(
            words_per_batch=settings.words_per_batch,
            words_per_level=settings.words_per_level,
            min_completion_fraction=settings.min_completion_fraction,
        )

    @property
    def batches_per_level(self) -> int:
        return math.ceil(self.words_per_level / self.words_per_batch)

    @property
    def min_words_for_progression(self) -> int:
        """Learned words needed in a batch before moving to the next one."""
        return math.floor(self.words_per_batch * self.min_completion_fraction)

    # --- Batch numbering ---

    def current_batch(self, learned_words_in_level: int) -> int:
        """Return the batch the learner should be working on.

        A batch is left only once ``words_per_batch`` words have been learned,
        so the completed-batch count is rounded up by one to point at the next
        working batch. The result is clamped to the last batch of the level.
        """
        if learned_words_in_level <= 0:
            return 1
        completed_full_batches = learned_words_in_level // self.words_per_batch
        return min(completed_full_batches + 1, self.batches_per_level)

    def batch_for_position(self, index: int) -> int:
        """Batch number for the word at 0-based creation ``index`` in its level."""
        if index < 0:
            raise ValueError("index must be non-negative")
        return index // self.words_per_batch + 1

    def completed_batches(self, learned_words_in_level: int) -> list[int]:
        completed = min(learned_words_in_level // self.words_per_batch, self.batches_per_level)
        return list(range(1, completed + 1))

    # --- Gates ---

    def can_progress_level(self, level: str, learned_words_in_level: int) -> bool:
        """Hard gate: every word of the level must be learned."""
        level_index(level)
        return learned_words_in_level >= self.words_per_level

    def can_advance_batch(self, words_in_current_batch: int, learned_in_batch: int) -> bool:
        """Soft gate: enough of the batch learned, and the batch itself big enough.

        Requiring the batch to hold at least the threshold stops learners
        advancing out of a short, partially generated batch.
        """
        threshold = self.min_words_for_progression
        return learned_in_batch >= threshold and words_in_current_batch >= threshold

    def validate_batch_integrity(self, actual_word_count: int) -> BatchIntegrity:
        """A batch is ready for display only when it is exactly full."""
        return BatchIntegrity(
            is_valid=actual_word_count == self.words_per_batch,
            expected_words=self.words_per_batch,
            actual_words=actual_word_count,
            words_needed=max(0, self.words_per_batch - actual_word_count),
        )

    # --- Progress summaries ---

    def level_progress(self, level: str, learned_words_in_level: int) -> Progress:
        level_index(level)
        return Progress(
            percentage=min(100.0, learned_words_in_level / self.words_per_level * 100),
            words_remaining=max(0, self.words_per_level - learned_words_in_level),
            is_completed=learned_words_in_level >= self.words_per_level,
        )

    def batch_progress(self, learned_words_in_batch: int) -> Progress:
        return Progress(
            percentage=min(100.0, learned_words_in_batch / self.words_per_batch * 100),
            words_remaining=max(0, self.words_per_batch - learned_words_in_batch),
            is_completed=learned_words_in_batch >= self.words_per_batch,
        )

    def is_level_accessible(self, level: str, current_level: str) -> bool:
        """Two lowest levels, the current level, and every level already passed."""
        if level in ALWAYS_ACCESSIBLE_LEVELS:
            return True
        return level_index(level) <= level_index(current_level)
