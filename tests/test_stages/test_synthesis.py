"""Tests for the synthesis stage."""

import json

import pytest

from interview_prep.exceptions import ProviderError, SynthesisError
from interview_prep.models import QuestionSet, StagePayload
from interview_prep.stages.synthesis import (
    STRATEGY_FAILURE_PLACEHOLDER,
    coerce_question_set,
    handle_synthesis,
)
from tests.fakes import FakeProvider, route

PAYLOAD = StagePayload(uni="한국대학교", dept="컴퓨터공학과", curriculum="교육과정", trends="경향")

STRATEGY = json.dumps(
    {
        "coreStrategy": "  자료구조 기본기를 강조하세요. ",
        "coreConcepts": [
            {"keyword": "자료구조", "description": "핵심 과목", "example": "스택과 큐"},
            {"keyword": "", "description": "무시됨"},
        ],
    },
    ensure_ascii=False,
)
QUESTIONS = json.dumps(
    {
        "high": [{"question": "B-트리를 설명하세요.", "intent": "깊이", "tip": "예시", "followUp": "삽입은?"}],
        "medium": [{"question": "정렬 알고리즘 비교", "intent": "", "tip": ""}],
        "low": [{"question": "지원 동기는?"}, {"intent": "no question"}],
    },
    ensure_ascii=False,
)

STRATEGY_KEY = "interview strategist"
QUESTIONS_KEY = "Generate 9 anticipated interview questions"


@pytest.mark.asyncio
async def test__both_sub_tasks__fill_the_plan(make_context):
    provider = FakeProvider(responder=route({STRATEGY_KEY: STRATEGY, QUESTIONS_KEY: QUESTIONS}))

    plan = await handle_synthesis(PAYLOAD, make_context(provider))

    assert plan.core_strategy == "자료구조 기본기를 강조하세요."
    assert [c.keyword for c in plan.core_concepts] == ["자료구조"]
    assert plan.questions.high[0].follow_up == "삽입은?"
    assert plan.questions.medium[0].follow_up is None
    assert [q.question for q in plan.questions.low] == ["지원 동기는?"]
    assert all(call.options.response_schema for call in provider.calls)


@pytest.mark.asyncio
async def test__questions_failure__leaves_empty_tiers(make_context):
    provider = FakeProvider(
        responder=route({STRATEGY_KEY: STRATEGY, QUESTIONS_KEY: ProviderError(400, "blocked")})
    )

    plan = await handle_synthesis(PAYLOAD, make_context(provider))

    assert plan.core_strategy == "자료구조 기본기를 강조하세요."
    assert plan.questions == QuestionSet()


@pytest.mark.asyncio
async def test__strategy_failure__uses_placeholder(make_context):
    provider = FakeProvider(
        responder=route({STRATEGY_KEY: ProviderError(400, "blocked"), QUESTIONS_KEY: QUESTIONS})
    )

    plan = await handle_synthesis(PAYLOAD, make_context(provider))

    assert plan.core_strategy == STRATEGY_FAILURE_PLACEHOLDER
    assert plan.core_concepts == []
    assert len(plan.questions.high) == 1


@pytest.mark.asyncio
async def test__every_sub_task_failing__raises(make_context):
    provider = FakeProvider(responder=lambda model, prompt, options: ProviderError(400, "blocked"))

    with pytest.raises(SynthesisError) as exc_info:
        await handle_synthesis(PAYLOAD, make_context(provider))

    assert "strategy" in exc_info.value.reason
    assert "questions" in exc_info.value.reason


@pytest.mark.asyncio
async def test__sub_task__runs_only_that_call(make_context):
    provider = FakeProvider(responder=route({QUESTIONS_KEY: QUESTIONS}))
    payload = PAYLOAD.model_copy(update={"sub_task": "questions"})

    plan = await handle_synthesis(payload, make_context(provider))

    assert len(provider.calls) == 1
    assert plan.core_strategy == ""
    assert len(plan.questions.high) == 1


@pytest.mark.asyncio
async def test__single_sub_task_failure__raises(make_context):
    provider = FakeProvider(responder=route({STRATEGY_KEY: ProviderError(400, "blocked")}))
    payload = PAYLOAD.model_copy(update={"sub_task": "strategy"})

    with pytest.raises(SynthesisError):
        await handle_synthesis(payload, make_context(provider))


def test__question_set__accepts_nested_questions_key():
    raw = {"questions": {"high": [{"question": "Q1"}], "medium": "not a list"}}

    result = coerce_question_set(raw)

    assert [q.question for q in result.high] == ["Q1"]
    assert result.medium == []
    assert result.low == []
