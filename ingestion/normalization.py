"""Word normalization and similarity scoring.

Canonicalizes word strings (case, diacritics, quote variants, whitespace) so
that generated vocabulary can be compared robustly against a learner's
existing words.
"""

import re
import unicodedata

import Levenshtein

_WHITESPACE_RE = re.compile(r"\s+")
_COMBINING_MARKS_RE = re.compile("[\u0300-\u036f]")

_QUOTE_TRANSLATION = str.maketrans(
    {
        "‘": "'",  # left single quotation mark
        "’": "'",  # right single quotation mark
        "‚": "'",
        "‛": "'",
        "′": "'",  # prime
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
        "″": '"',  # double prime
    }
)

# Folding applied to the lowercased word before diacritics are stripped
_LANGUAGE_FOLDS: dict[str, list[tuple[str, str]]] = {
    "spanish": [("ñ", "n"), ("á", "a"), ("à", "a"), ("é", "e"), ("è", "e"),
                ("í", "i"), ("ì", "i"), ("ó", "o"), ("ò", "o"), ("ú", "u"), ("ù", "u")],
    "french": [("à", "a"), ("á", "a"), ("â", "a"), ("ã", "a"), ("è", "e"), ("é", "e"),
               ("ê", "e"), ("ë", "e"), ("ì", "i"), ("í", "i"), ("î", "i"), ("ï", "i"),
               ("ò", "o"), ("ó", "o"), ("ô", "o"), ("õ", "o"), ("ù", "u"), ("ú", "u"),
               ("û", "u"), ("ü", "u"), ("ç", "c")],
    "german": [("ä", "ae"), ("ö", "oe"), ("ü", "ue"), ("ß", "ss")],
    "portuguese": [("à", "a"), ("á", "a"), ("â", "a"), ("ã", "a"), ("ä", "a"), ("è", "e"),
                   ("é", "e"), ("ê", "e"), ("ë", "e"), ("ì", "i"), ("í", "i"), ("î", "i"),
                   ("ï", "i"), ("ò", "o"), ("ó", "o"), ("ô", "o"), ("õ", "o"), ("ö", "o"),
                   ("ù", "u"), ("ú", "u"), ("û", "u"), ("ü", "u"), ("ç", "c"), ("ñ", "n")],
}

_LANGUAGE_ALIASES = {"es": "spanish", "fr": "french", "de": "german", "pt": "portuguese"}


def normalize_word(word: str) -> str:
    """Canonical form of a word for equality and similarity checks.

    - Lowercase
    - Unicode NFD decomposition with combining diacritics removed
    - Curly quotes and primes mapped to plain ASCII quotes
    - Whitespace runs collapsed to one space, ends trimmed
    """
    if not word or not isinstance(word, str):
        return ""
    text = unicodedata.normalize("NFD", word.lower())
    text = _COMBINING_MARKS_RE.sub("", text)
    text = text.translate(_QUOTE_TRANSLATION)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_word_for_language(word: str, language: str) -> str:
    """Normalize with language-specific letter folding (e.g. German ä -> ae)."""
    key = language.lower()
    folds = _LANGUAGE_FOLDS.get(_LANGUAGE_ALIASES.get(key, key))
    if not folds or not word:
        return normalize_word(word)
    text = unicodedata.normalize("NFC", word.lower())
    for source, target in folds:
        text = text.replace(source, target)
    return normalize_word(text)


def word_similarity(word1: str, word2: str) -> float:
    """Similarity in [0, 1] between the normalized forms of two words.

    One minus the Levenshtein distance over the longer normalized length.
    """
    normalized1 = normalize_word(word1)
    normalized2 = normalize_word(word2)
    if normalized1 == normalized2:
        return 1.0
    max_length = max(len(normalized1), len(normalized2))
    if max_length == 0:
        return 1.0
    return 1 - Levenshtein.distance(normalized1, normalized2) / max_length
