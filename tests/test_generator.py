"""Tests for LLM word generation and response parsing."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from backend.errors import GenerationMalformed
from ingestion.generator import GeneratedWord, LLMWordGenerator, validate_generated_words
from ingestion.utils import parse_llm_json_response


def _payload(*originals: str) -> list[dict]:
    return [{"original": o, "translation": f"{o} (en)"} for o in originals]


def _mock_llm(response: str) -> MagicMock:
    llm = MagicMock()
    llm.create_message = AsyncMock(return_value=response)
    return llm


class TestParseResponse:
    def test_plain_json(self) -> None:
        assert parse_llm_json_response('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_json(self) -> None:
        assert parse_llm_json_response('```json\n{"words": []}\n```') == {"words": []}

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(GenerationMalformed):
            parse_llm_json_response("Here are your words: perro, gato")


class TestValidate:
    def test_valid(self) -> None:
        payload = [{"original": "perro", "translation": "dog"}, {"original": " gato ", "translation": "cat "}]
        assert validate_generated_words(payload, 2) == [
            GeneratedWord("perro", "dog"),
            GeneratedWord("gato", "cat"),
        ]

    def test_wrapped_in_object(self) -> None:
        assert len(validate_generated_words({"words": _payload("perro")}, 1)) == 1

    def test_wrong_count(self) -> None:
        with pytest.raises(GenerationMalformed, match="Requested 3"):
            validate_generated_words(_payload("perro", "gato"), 3)

    def test_internal_duplicates(self) -> None:
        with pytest.raises(GenerationMalformed, match="more than once"):
            validate_generated_words(_payload("Café", "cafe"), 2)

    @pytest.mark.parametrize(
        "payload",
        [
            {"perro": "dog"},
            ["perro"],
            [{"original": "perro"}],
            [{"original": "", "translation": "dog"}],
        ],
    )
    def test_wrong_shape(self, payload: object) -> None:
        with pytest.raises(GenerationMalformed):
            validate_generated_words(payload, 1)


class TestLLMWordGenerator:
    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        llm = _mock_llm("```json\n" + json.dumps(_payload("perro", "gato")) + "\n```")
        generator = LLMWordGenerator(llm)

        words = await generator.generate("Spanish", "English", "A1", 2, avoid=["casa"])

        assert [w.original for w in words] == ["perro", "gato"]
        prompt = llm.create_message.call_args.kwargs["prompt"]
        assert "exactly 2 distinct Spanish" in prompt
        assert "Beginner" in prompt
        assert '"casa"' in prompt

    @pytest.mark.asyncio
    async def test_no_avoid_section_without_avoid_list(self) -> None:
        llm = _mock_llm(json.dumps(_payload("perro")))

        await LLMWordGenerator(llm).generate("Spanish", "English", "B2", 1)

        assert "Do not include" not in llm.create_message.call_args.kwargs["prompt"]

    @pytest.mark.asyncio
    async def test_malformed_response(self) -> None:
        llm = _mock_llm("Sorry, I cannot help with that.")
        with pytest.raises(GenerationMalformed):
            await LLMWordGenerator(llm).generate("Spanish", "English", "A1", 2)
