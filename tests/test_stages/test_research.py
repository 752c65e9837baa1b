"""Tests for the curriculum and trends stages and the review/fact-check passes."""

import pytest

from interview_prep.exceptions import ProviderError
from interview_prep.llm.provider import GenerationResponse
from interview_prep.models import Source, StageConfig, StagePayload
from interview_prep.stages.agents import fact_check_and_refine, review_content
from interview_prep.stages.research import handle_curriculum, handle_trends
from tests.fakes import FakeProvider, grounding, route

PAYLOAD = StagePayload(uni="한국대학교", dept="컴퓨터공학과")
RAW = "1. 전공 필수 과목: 자료구조, 알고리즘, 운영체제, 컴퓨터구조 등 핵심 과목을 이수합니다."
REVIEWED = "### 1. 전공 필수 과목\n자료구조, 알고리즘, 운영체제, 컴퓨터구조 등 학과의 핵심 전공 과목을 순서대로 이수합니다."
VERIFIED = "### 1. 전공 필수 과목\n자료구조, 알고리즘, 운영체제를 이수합니다. (출처 확인됨)"


def _research_route(key: str, fact_check=VERIFIED):
    return route(
        {
            "content formatting agent": REVIEWED,
            "strict fact-checking agent": fact_check,
            key: GenerationResponse(
                text=RAW,
                grounding=grounding(("Curriculum", "https://cs.example.ac.kr"), ("Dup", "https://cs.example.ac.kr")),
            ),
        }
    )


class TestCurriculum:
    @pytest.mark.asyncio
    async def test__research__is_reviewed_then_fact_checked(self, make_context):
        provider = FakeProvider(responder=_research_route("educational curriculum analyst"))

        result = await handle_curriculum(PAYLOAD, make_context(provider))

        assert result.text == VERIFIED
        assert result.sources == [Source(title="Curriculum", uri="https://cs.example.ac.kr")]
        assert [call.method for call in provider.calls] == ["stream", "once", "once"]
        assert provider.calls[0].options.grounded is True
        assert "https://cs.example.ac.kr" in provider.calls[2].prompt

    @pytest.mark.asyncio
    async def test__failed_fact_check__keeps_reviewed_text(self, make_context):
        provider = FakeProvider(
            responder=_research_route("educational curriculum analyst", fact_check=ProviderError(400, "x"))
        )

        result = await handle_curriculum(PAYLOAD, make_context(provider))

        assert result.text == REVIEWED

    @pytest.mark.asyncio
    async def test__config_model__overrides_research_model(self, make_context):
        provider = FakeProvider(responder=_research_route("educational curriculum analyst"))
        payload = PAYLOAD.model_copy(update={"config": StageConfig(model="gemini-2.0-flash")})

        await handle_curriculum(payload, make_context(provider))

        assert provider.calls[0].model == "google-gla:gemini-2.0-flash"

    @pytest.mark.asyncio
    async def test__exhausted_retries__propagate(self, make_context):
        provider = FakeProvider(responder=lambda model, prompt, options: ProviderError(503, "down"))

        with pytest.raises(ProviderError):
            await handle_curriculum(PAYLOAD, make_context(provider))

        assert provider.models() == [
            "google-gla:gemini-2.5-flash",
            "google-gla:gemini-2.5-flash",
            "google-gla:gemini-2.5-pro",
        ]


@pytest.mark.asyncio
async def test__trends__use_trend_prompt(make_context):
    provider = FakeProvider(responder=_research_route("Analyze transfer admission interview trends"))

    result = await handle_trends(PAYLOAD, make_context(provider))

    assert result.text == VERIFIED
    assert "컴퓨터공학과" in provider.calls[0].prompt


class TestAgents:
    @pytest.mark.asyncio
    async def test__short_content__skips_fact_check(self, make_context):
        provider = FakeProvider(replies=[])

        assert await fact_check_and_refine(make_context(provider), "짧은 글", "ctx", []) == "짧은 글"
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test__empty_review_answer__keeps_original(self, make_context):
        provider = FakeProvider(replies=[""])

        assert await review_content(make_context(provider), RAW, "ctx") == RAW

    @pytest.mark.asyncio
    async def test__review_failure__keeps_original(self, make_context):
        provider = FakeProvider(replies=[ProviderError(500, "boom")])

        assert await review_content(make_context(provider), RAW, "ctx") == RAW
