"""Tests for level and batch policy arithmetic."""

import pytest

from backend.config import Settings
from backend.errors import LevelNotFound
from backend.progression.policy import (
    LEVEL_DETAILS,
    PROFICIENCY_LEVELS,
    LevelPolicy,
    level_index,
    next_level,
    previous_level,
)


@pytest.fixture
def policy() -> LevelPolicy:
    return LevelPolicy(words_per_batch=50, words_per_level=1000, min_completion_fraction=0.8)


# --- Level sequence ---


class TestLevelSequence:
    def test_next_level(self) -> None:
        assert next_level("A1") == "A2"
        assert next_level("C1") == "C2"

    def test_next_level_at_ceiling(self) -> None:
        assert next_level("C2") is None

    def test_previous_level(self) -> None:
        assert previous_level("A2") == "A1"
        assert previous_level("A1") is None

    def test_unknown_level(self) -> None:
        with pytest.raises(LevelNotFound):
            level_index("D1")

    def test_every_level_has_details(self) -> None:
        assert set(LEVEL_DETAILS) == set(PROFICIENCY_LEVELS)


# --- Batch numbering ---


class TestCurrentBatch:
    def test_zero_learned_is_batch_one(self, policy: LevelPolicy) -> None:
        assert policy.current_batch(0) == 1

    def test_mid_batch(self, policy: LevelPolicy) -> None:
        assert policy.current_batch(49) == 1
        assert policy.current_batch(75) == 2

    def test_batch_boundary_points_at_next_batch(self, policy: LevelPolicy) -> None:
        assert policy.current_batch(50) == 2
        assert policy.current_batch(100) == 3

    def test_clamped_to_last_batch(self, policy: LevelPolicy) -> None:
        assert policy.current_batch(980) == 20
        assert policy.current_batch(1000) == 20
        assert policy.current_batch(5000) == 20

    def test_non_decreasing_and_in_range(self, policy: LevelPolicy) -> None:
        previous = policy.current_batch(0)
        for learned in range(1, 1200):
            batch = policy.current_batch(learned)
            assert 1 <= batch <= policy.batches_per_level
            assert batch >= previous
            previous = batch

    def test_batches_per_level_rounds_up(self) -> None:
        assert LevelPolicy(words_per_batch=30, words_per_level=100).batches_per_level == 4

    def test_batch_for_position(self, policy: LevelPolicy) -> None:
        assert policy.batch_for_position(0) == 1
        assert policy.batch_for_position(49) == 1
        assert policy.batch_for_position(50) == 2
        assert policy.batch_for_position(999) == 20

    def test_batch_for_negative_position(self, policy: LevelPolicy) -> None:
        with pytest.raises(ValueError):
            policy.batch_for_position(-1)

    def test_completed_batches(self, policy: LevelPolicy) -> None:
        assert policy.completed_batches(0) == []
        assert policy.completed_batches(120) == [1, 2]


# --- Gates ---


class TestGates:
    def test_level_gate_is_hard(self, policy: LevelPolicy) -> None:
        assert policy.can_progress_level("A1", 999) is False
        assert policy.can_progress_level("A1", 1000) is True

    def test_level_gate_rejects_unknown_level(self, policy: LevelPolicy) -> None:
        with pytest.raises(LevelNotFound):
            policy.can_progress_level("Z9", 1000)

    def test_batch_gate_is_soft(self, policy: LevelPolicy) -> None:
        assert policy.min_words_for_progression == 40
        assert policy.can_advance_batch(50, 40) is True
        assert policy.can_advance_batch(50, 39) is False

    def test_batch_gate_needs_a_big_enough_batch(self, policy: LevelPolicy) -> None:
        assert policy.can_advance_batch(39, 39) is False

    @pytest.mark.parametrize(
        ("actual", "valid", "needed"),
        [(49, False, 1), (50, True, 0), (51, False, 0), (0, False, 50)],
    )
    def test_batch_integrity_is_exact(
        self, policy: LevelPolicy, actual: int, valid: bool, needed: int
    ) -> None:
        integrity = policy.validate_batch_integrity(actual)
        assert integrity.is_valid is valid
        assert integrity.words_needed == needed
        assert integrity.actual_words == actual
        assert integrity.expected_words == 50


# --- Progress and accessibility ---


class TestProgress:
    def test_level_progress(self, policy: LevelPolicy) -> None:
        progress = policy.level_progress("A1", 250)
        assert progress.percentage == 25.0
        assert progress.words_remaining == 750
        assert progress.is_completed is False

    def test_level_progress_capped(self, policy: LevelPolicy) -> None:
        progress = policy.level_progress("B1", 1200)
        assert progress.percentage == 100.0
        assert progress.words_remaining == 0
        assert progress.is_completed is True

    def test_batch_progress(self, policy: LevelPolicy) -> None:
        progress = policy.batch_progress(25)
        assert progress.percentage == 50.0
        assert progress.words_remaining == 25

    def test_lowest_levels_always_accessible(self, policy: LevelPolicy) -> None:
        assert policy.is_level_accessible("A2", "A1") is True

    def test_passed_and_current_levels_accessible(self, policy: LevelPolicy) -> None:
        assert policy.is_level_accessible("B1", "B2") is True
        assert policy.is_level_accessible("B2", "B2") is True

    def test_future_levels_locked(self, policy: LevelPolicy) -> None:
        assert policy.is_level_accessible("B1", "A2") is False
        assert policy.is_level_accessible("C2", "B1") is False


class TestConfiguration:
    def test_from_settings(self) -> None:
        settings = Settings(words_per_batch=10, words_per_level=100, min_completion_fraction=0.5)
        policy = LevelPolicy.from_settings(settings)
        assert policy.batches_per_level == 10
        assert policy.min_words_for_progression == 5

    @pytest.mark.parametrize(
        "kwargs",
        [{"words_per_batch": 0}, {"words_per_level": -1}, {"min_completion_fraction": 0}],
    )
    def test_invalid_configuration(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            LevelPolicy(**kwargs)
