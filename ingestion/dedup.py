"""Duplicate filtering for freshly generated vocabulary.

Generated candidates are compared against the learner's existing words with
normalization plus fuzzy matching, so near-duplicates (accents, plural
suffixes, look-alike characters, small typos) are not presented again.
These are pure functions: they never fail, only return possibly-empty lists.
"""

import logging
from typing import Protocol, TypeVar

from ingestion.normalization import normalize_word, word_similarity

logger = logging.getLogger(__name__)

COMMON_SUFFIXES = ("s", "es", "ed", "ing", "er", "est", "ly")

# Look-alike characters treated as equal when comparing words position by position
SIMILAR_CHARACTERS = frozenset(
    {
        ("0", "o"),
        ("1", "l"),
        ("1", "i"),
        ("5", "s"),
        ("3", "e"),
    }
)

# Roots this short are too ambiguous to match on
MIN_ROOT_LENGTH = 3

DEFAULT_SIMILARITY_THRESHOLD = 0.85
LARGE_VOCABULARY_THRESHOLD = 0.75
LARGE_VOCABULARY_SIZE = 200

# Advanced filtering: (minimum existing words, similarity threshold), strictest first
ADVANCED_THRESHOLDS: tuple[tuple[int, float], ...] = ((300, 0.70), (200, 0.75), (100, 0.80))
ADVANCED_ROOT_MATCH_SIZE = 150


class HasOriginal(Protocol):
    original: str


W = TypeVar("W", bound=HasOriginal)


def remove_common_suffix(word: str) -> str:
    """Strip the first matching common suffix, keeping at least a 3-letter stem."""
    for suffix in COMMON_SUFFIXES:
        if word.endswith(suffix) and len(word) > len(suffix) + 2:
            return word[: -len(suffix)]
    return word


def _is_similar_character(a: str, b: str) -> bool:
    return (a, b) in SIMILAR_CHARACTERS or (b, a) in SIMILAR_CHARACTERS


def are_simple_variations(word1: str, word2: str) -> bool:
    """True if two normalized words differ by at most one character.

    Words are compared position by position over their shared length;
    look-alike pairs (0/o, 1/l, 1/i, 5/s, 3/e) are not counted as
    differences. Lengths may differ by at most one.
    """
    if abs(len(word1) - len(word2)) > 1:
        return False

    differences = 0
    for char1, char2 in zip(word1, word2):
        if char1 != char2 and not _is_similar_character(char1, char2):
            differences += 1
            if differences > 1:
                return False
    return True


def are_words_duplicate(word1: str, word2: str) -> bool:
    """Decide whether two words are the same vocabulary item."""
    if not word1 or not word2:
        return False

    normalized1 = normalize_word(word1)
    normalized2 = normalize_word(word2)
    if normalized1 == normalized2:
        return True

    root1 = remove_common_suffix(normalized1)
    root2 = remove_common_suffix(normalized2)
    if root1 == root2 and len(root1) > MIN_ROOT_LENGTH:
        return True

    return are_simple_variations(normalized1, normalized2)


def are_words_semantically_duplicate(
    word1: str, word2: str, threshold: float = DEFAULT_SIMILARITY_THRESHOLD
) -> bool:
    return word_similarity(word1, word2) >= threshold


def similarity_threshold(existing_count: int) -> float:
    """Larger vocabularies collide more often, so they are filtered more strictly."""
    if existing_count > LARGE_VOCABULARY_SIZE:
        return LARGE_VOCABULARY_THRESHOLD
    return DEFAULT_SIMILARITY_THRESHOLD


def advanced_similarity_threshold(user_word_count: int) -> float:
    for minimum, threshold in ADVANCED_THRESHOLDS:
        if user_word_count > minimum:
            return threshold
    return DEFAULT_SIMILARITY_THRESHOLD


def filter_duplicates(candidates: list[W], existing: list[HasOriginal]) -> list[W]:
    """Drop candidates that duplicate an existing word or an earlier candidate.

    Within the candidate list the first occurrence wins.
    """
    threshold = similarity_threshold(len(existing))
    existing_normalized = {normalize_word(word.original) for word in existing}

    kept: list[W] = []
    for candidate in candidates:
        if normalize_word(candidate.original) in existing_normalized:
            continue
        if any(
            are_words_duplicate(candidate.original, word.original)
            or are_words_semantically_duplicate(candidate.original, word.original, threshold)
            for word in existing
        ):
            continue
        if any(are_words_duplicate(candidate.original, other.original) for other in kept):
            continue
        kept.append(candidate)

    logger.debug(
        "Duplicate filter: %d candidates -> %d kept (%d existing, threshold %.2f)",
        len(candidates),
        len(kept),
        len(existing),
        threshold,
    )
    return kept


def filter_duplicates_advanced(
    candidates: list[W],
    existing: list[HasOriginal],
    user_word_count: int | None = None,
) -> list[W]:
    """Stricter filter for learners with large vocabularies.

    Above 150 words, sharing a root with any existing word is enough to be
    dropped, and the similarity cutoff tightens as the vocabulary grows.
    """
    count = len(existing) if user_word_count is None else user_word_count
    threshold = advanced_similarity_threshold(count)
    existing_normalized = {normalize_word(word.original) for word in existing}
    existing_roots = {remove_common_suffix(normalized) for normalized in existing_normalized}

    kept: list[W] = []
    added_normalized: set[str] = set()
    for candidate in candidates:
        normalized = normalize_word(candidate.original)
        root = remove_common_suffix(normalized)

        if normalized in added_normalized or normalized in existing_normalized:
            continue
        if (
            count > ADVANCED_ROOT_MATCH_SIZE
            and root in existing_roots
            and len(root) > MIN_ROOT_LENGTH
        ):
            continue
        if any(
            are_words_duplicate(candidate.original, word.original)
            or are_words_semantically_duplicate(candidate.original, word.original, threshold)
            for word in existing
        ):
            continue

        kept.append(candidate)
        added_normalized.add(normalized)

    logger.debug(
        "Advanced duplicate filter: %d candidates -> %d kept (%d words, threshold %.2f)",
        len(candidates),
        len(kept),
        count,
        threshold,
    )
    return kept
