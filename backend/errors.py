"""Error taxonomy and policy outcome records.

Faults (missing records, malformed generator output, cache backend failures,
client timeouts) are exceptions. Policy violations such as trying to level up
too early are expected outcomes and are returned as plain records instead.
"""

from dataclasses import dataclass


class LexibatchError(Exception):
    """Base class for all application errors."""


# --- Not found ---


class NotFoundError(LexibatchError):
    """A requested record does not exist. Terminal for the request."""


class LearnerNotFound(NotFoundError):
    def __init__(self, learner_id: int) -> None:
        super().__init__(f"Learner {learner_id} not found")
        self.learner_id = learner_id


class WordNotFound(NotFoundError):
    def __init__(self, word_id: int, learner_id: int | None = None) -> None:
        super().__init__(f"Word {word_id} not found")
        self.word_id = word_id
        self.learner_id = learner_id


class LevelNotFound(NotFoundError):
    def __init__(self, level: str) -> None:
        super().__init__(f"Unknown proficiency level: {level}")
        self.level = level


# --- Recoverable faults ---


class GenerationMalformed(LexibatchError):
    """The content generator returned output that cannot be accepted.

    Nothing derived from the rejected output is ever persisted; the caller
    may retry generation.
    """


class CacheFault(LexibatchError):
    """The cache backend failed. Never fatal to the calling operation."""


class RequestTimeout(LexibatchError, TimeoutError):
    """A client-side request did not settle in time.

    The outcome of the underlying operation is unknown, not rolled back.
    """

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Request timeout after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


# --- Policy outcomes ---


@dataclass(frozen=True)
class InsufficientProgress:
    """Level-up refused: not enough learned words in the current level."""

    level: str
    required: int
    current: int

    @property
    def remaining(self) -> int:
        return max(0, self.required - self.current)


@dataclass(frozen=True)
class NoNextLevel:
    """Level-up refused: the learner is already at the highest level."""

    level: str
