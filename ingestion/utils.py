"""Shared utilities for the ingestion pipeline."""

import json
import logging

from backend.errors import GenerationMalformed

logger = logging.getLogger(__name__)


def parse_llm_json_response(response: str, context: str = "LLM response") -> dict | list:
    """Extract and parse JSON from an LLM response.

    Handles direct JSON output as well as JSON wrapped in a markdown code
    block (```json ... ```).

    Raises:
        GenerationMalformed: If the text is not valid JSON.
    """
    text = response.strip()

    if text.startswith("```"):
        # Drop the opening fence and its optional language tag
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse %s as JSON", context)
        logger.debug("Response was: %s", text[:500])
        raise GenerationMalformed(f"{context} is not valid JSON: {e.msg}") from e


def require_string_field(item: object, field: str, context: str) -> str:
    """Return a non-empty string field of a parsed JSON object."""
    if not isinstance(item, dict):
        raise GenerationMalformed(f"{context}: expected an object, got {type(item).__name__}")
    value = item.get(field)
    if not isinstance(value, str) or not value.strip():
        raise GenerationMalformed(f"{context}: missing or empty '{field}'")
    return value.strip()
