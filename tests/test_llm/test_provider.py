"""Tests for the pydantic-ai provider adapter."""

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    NativeToolReturnPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from interview_prep.exceptions import ProviderError
from interview_prep.llm.provider import (
    GenerationOptions,
    GroundingChunk,
    PydanticAIProvider,
    _build_instructions,
    _citations_from_content,
    grounding_from_messages,
)


def _provider_returning(text: str) -> PydanticAIProvider:
    return PydanticAIProvider(model_resolver=lambda name: TestModel(custom_output_text=text))


@pytest.mark.asyncio
async def test__generate_once__returns_model_text():
    provider = _provider_returning("교육과정 분석")

    response = await provider.generate_once("google-gla:gemini-2.5-flash", "prompt", GenerationOptions())

    assert response.text == "교육과정 분석"
    assert response.grounding is None


@pytest.mark.asyncio
async def test__generate_stream__yields_text_that_joins_to_output():
    provider = _provider_returning("one two three")

    stream = await provider.generate_stream("google-gla:gemini-2.5-flash", "prompt", GenerationOptions())
    texts = [chunk.text async for chunk in stream]

    assert "".join(texts) == "one two three"


@pytest.mark.asyncio
async def test__model_http_error__becomes_provider_error():
    def _fail(messages: list[ModelMessage], info: AgentInfo):
        raise ModelHTTPError(status_code=503, model_name="gemini", body="overloaded")

    provider = PydanticAIProvider(model_resolver=lambda name: FunctionModel(_fail))

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate_once("google-gla:gemini-2.5-flash", "prompt", GenerationOptions())

    assert exc_info.value.status_code == 503


def test__json_instructions__include_schema():
    instructions = _build_instructions(
        GenerationOptions(system_instruction="Be brief.", json_output=True, response_schema={"type": "object"})
    )

    assert instructions is not None
    assert instructions.startswith("Be brief.")
    assert "raw JSON object" in instructions
    assert '{"type": "object"}' in instructions


def test__plain_options__have_no_instructions():
    assert _build_instructions(GenerationOptions()) is None


class TestCitationsFromContent:
    def test__nested_web_entries__are_flattened(self):
        content = {
            "grounding_chunks": [
                {"web": {"title": "학과 홈페이지", "uri": "https://cs.example.ac.kr"}},
                {"web": {"uri": "https://untitled.example"}},
            ]
        }

        assert _citations_from_content(content) == [
            GroundingChunk(title="학과 홈페이지", uri="https://cs.example.ac.kr"),
            GroundingChunk(title=None, uri="https://untitled.example"),
        ]

    def test__search_result_list__uses_url_key(self):
        content = [{"title": "Faculty", "url": "https://faculty.example"}, "ignored", 3]

        assert _citations_from_content(content) == [GroundingChunk(title="Faculty", uri="https://faculty.example")]

    def test__unrecognised_content__yields_nothing(self):
        assert _citations_from_content("plain text") == []
        assert _citations_from_content({"query": "no links"}) == []


class TestGroundingFromMessages:
    def test__native_search_returns__become_grounding_chunks(self):
        messages = [
            ModelRequest(parts=[UserPromptPart("컴퓨터공학과 교육과정")]),
            ModelResponse(
                parts=[
                    NativeToolReturnPart(
                        tool_name="web_search",
                        content=[{"title": "교육과정", "url": "https://cs.example.ac.kr/curriculum"}],
                    ),
                    TextPart("요약"),
                ]
            ),
        ]

        grounding = grounding_from_messages(messages)

        assert grounding is not None
        assert grounding.chunks == [GroundingChunk(title="교육과정", uri="https://cs.example.ac.kr/curriculum")]

    def test__responses_without_search__have_no_grounding(self):
        assert grounding_from_messages([ModelResponse(parts=[TextPart("plain")])]) is None
