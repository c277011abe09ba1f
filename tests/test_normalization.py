"""Tests for word normalization and similarity scoring."""

import pytest

from ingestion.normalization import (
    normalize_word,
    normalize_word_for_language,
    word_similarity,
)


class TestNormalizeWord:
    def test_lowercases_and_strips_diacritics(self) -> None:
        assert normalize_word("Résumé") == "resume"
        assert normalize_word("naïve café") == "naive cafe"

    def test_collapses_whitespace(self) -> None:
        assert normalize_word("  hello \t\n  world  ") == "hello world"

    def test_quote_variants(self) -> None:
        assert normalize_word("It’s") == "it's"
        assert normalize_word("“hola”") == '"hola"'

    def test_empty_and_non_string(self) -> None:
        assert normalize_word("") == ""
        assert normalize_word(None) == ""  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        "text",
        ["Résumé", "  Hello   World ", "ÅNGSTRÖM", "Straße", "İstanbul", "“quoted” text", "", "plain"],
    )
    def test_idempotent(self, text: str) -> None:
        once = normalize_word(text)
        assert normalize_word(once) == once


class TestLanguageFolding:
    def test_german_umlauts_fold_to_digraphs(self) -> None:
        assert normalize_word_for_language("Mädchen", "german") == "maedchen"
        assert normalize_word_for_language("Straße", "de") == "strasse"
        assert normalize_word_for_language("Über", "German") == "ueber"

    def test_spanish(self) -> None:
        assert normalize_word_for_language("Niño", "spanish") == "nino"

    def test_french_cedilla(self) -> None:
        assert normalize_word_for_language("Garçon", "fr") == "garcon"

    def test_portuguese(self) -> None:
        assert normalize_word_for_language("Coração", "portuguese") == "coracao"

    def test_unknown_language_uses_plain_normalization(self) -> None:
        assert normalize_word_for_language("Mädchen", "italian") == "madchen"


class TestSimilarity:
    def test_edit_distance_over_longer_length(self) -> None:
        # kitten -> sitting takes three edits over seven characters
        assert word_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
        assert word_similarity("", "abc") == 0.0

    def test_identical_after_normalization(self) -> None:
        assert word_similarity("Café", "cafe") == 1.0

    def test_partial_similarity(self) -> None:
        assert word_similarity("hello", "hallo") == pytest.approx(0.8)

    def test_both_empty(self) -> None:
        assert word_similarity("", "   ") == 1.0

    def test_completely_different(self) -> None:
        assert word_similarity("abc", "xyz") == 0.0
