"""Content generator adapter: asks an LLM for new vocabulary at a given level."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from backend.errors import GenerationMalformed
from backend.llm_client import LLMClient
from backend.progression.policy import LEVEL_DETAILS
from ingestion.normalization import normalize_word
from ingestion.utils import parse_llm_json_response, require_string_field

logger = logging.getLogger(__name__)

GENERATION_MAX_TOKENS = 8192
GENERATION_TEMPERATURE = 0.8

GENERATION_SYSTEM_PROMPT = """\
You are an experienced language teacher who builds vocabulary lists aligned with the \
Common European Framework of Reference for Languages (CEFR). You choose common, useful \
single words or short fixed expressions appropriate to the requested level, and give \
one concise translation for each."""

GENERATION_USER_PROMPT = """\
Generate exactly {count} distinct {language} vocabulary words for a learner at CEFR level \
{level} ({level_name}: {level_description}).

Translate each word into {native_language}.
{avoid_section}
Return a JSON array of exactly {count} objects, each with:
- "original": the word in {language}
- "translation": the {native_language} translation

Return ONLY the JSON array."""


@dataclass(frozen=True)
class GeneratedWord:
    original: str
    translation: str


class WordGenerator(ABC):
    """Produces candidate vocabulary for a (language, level) pair."""

    @abstractmethod
    async def generate(
        self,
        language: str,
        native_language: str,
        level: str,
        count: int,
        avoid: list[str] | None = None,
    ) -> list[GeneratedWord]:
        """Return exactly ``count`` distinct words or raise GenerationMalformed."""


def validate_generated_words(payload: object, count: int) -> list[GeneratedWord]:
    """Check shape, count and internal uniqueness of parsed generator output."""
    if isinstance(payload, dict) and isinstance(payload.get("words"), list):
        payload = payload["words"]
    if not isinstance(payload, list):
        raise GenerationMalformed(f"Expected a JSON array of words, got {type(payload).__name__}")
    if len(payload) != count:
        raise GenerationMalformed(f"Requested {count} words, generator returned {len(payload)}")

    words: list[GeneratedWord] = []
    seen: set[str] = set()
    for i, item in enumerate(payload):
        context = f"word {i + 1}"
        original = require_string_field(item, "original", context)
        translation = require_string_field(item, "translation", context)
        normalized = normalize_word(original)
        if normalized in seen:
            raise GenerationMalformed(f"Generator returned '{original}' more than once")
        seen.add(normalized)
        words.append(GeneratedWord(original=original, translation=translation))
    return words


class LLMWordGenerator(WordGenerator):
    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm

    async def generate(
        self,
        language: str,
        native_language: str,
        level: str,
        count: int,
        avoid: list[str] | None = None,
    ) -> list[GeneratedWord]:
        details = LEVEL_DETAILS[level]
        avoid_section = ""
        if avoid:
            avoid_section = (
                "\nDo not include any of these words the learner already has:\n"
                f"{json.dumps(avoid, ensure_ascii=False)}\n"
            )
        prompt = GENERATION_USER_PROMPT.format(
            count=count,
            language=language,
            native_language=native_language,
            level=level,
            level_name=details["name"],
            level_description=details["description"],
            avoid_section=avoid_section,
        )

        response = await self.llm.create_message(
            prompt=prompt,
            system=GENERATION_SYSTEM_PROMPT,
            max_tokens=GENERATION_MAX_TOKENS,
            temperature=GENERATION_TEMPERATURE,
        )
        payload = parse_llm_json_response(response, f"{language} {level} vocabulary")
        words = validate_generated_words(payload, count)
        logger.info("Generated %d %s words at %s", len(words), language, level)
        return words
