"""Synthesis stage: interview strategy and anticipated questions.

The two halves are separate, independently retried calls. A caller may ask
for one of them (``subTask``) or both, which then run concurrently. Whatever
happens upstream, the returned plan always has every field populated.
"""

import asyncio
from datetime import datetime
from typing import Any

from interview_prep.exceptions import SynthesisError
from interview_prep.json_repair import parse_json_safe
from interview_prep.llm.provider import GenerationOptions
from interview_prep.llm.streaming import generate_with_smart_retry
from interview_prep.logging import get_logger
from interview_prep.models import (
    CoreConcept,
    InterviewQuestion,
    QuestionSet,
    StagePayload,
    StrategicPlan,
    SubTask,
)
from interview_prep.sanitize import sanitize_input
from interview_prep.stages import prompts
from interview_prep.stages.base import StageContext

log = get_logger("interview_prep.stages.synthesis")

STRATEGY_FAILURE_PLACEHOLDER = "전략을 생성하는 중 오류가 발생했습니다."
QUESTION_TIERS = ("high", "medium", "low")

STRATEGY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "coreStrategy": {"type": "string"},
        "coreConcepts": {"type": "array", "items": CoreConcept.model_json_schema(by_alias=True)},
    },
    "required": ["coreStrategy", "coreConcepts"],
}

QUESTIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        tier: {"type": "array", "items": InterviewQuestion.model_json_schema(by_alias=True)} for tier in QUESTION_TIERS
    },
    "required": list(QUESTION_TIERS),
}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def coerce_concepts(raw: Any) -> list[CoreConcept]:
    if not isinstance(raw, list):
        return []
    return [
        CoreConcept(keyword=_text(item.get("keyword")), description=_text(item.get("description")), example=_text(item.get("example")))
        for item in raw
        if isinstance(item, dict) and _text(item.get("keyword"))
    ]


def coerce_questions(raw: Any) -> list[InterviewQuestion]:
    if not isinstance(raw, list):
        return []
    return [
        InterviewQuestion(
            question=_text(item.get("question")),
            intent=_text(item.get("intent")),
            tip=_text(item.get("tip")),
            follow_up=_text(item.get("followUp")) or None,
        )
        for item in raw
        if isinstance(item, dict) and _text(item.get("question"))
    ]


def coerce_question_set(raw: dict[str, Any]) -> QuestionSet:
    """Accept ``{"high": [...], ...}`` or the same nested under ``"questions"``."""
    tiers = raw.get("questions") if isinstance(raw.get("questions"), dict) else raw
    return QuestionSet(**{tier: coerce_questions(tiers.get(tier)) for tier in QUESTION_TIERS})


async def _generate_json(ctx: StageContext, payload: StagePayload, prompt: str, schema: dict, label: str) -> dict:
    response = await generate_with_smart_retry(
        ctx.provider,
        ctx.model_for(payload, ctx.settings.synthesis_model),
        prompt,
        GenerationOptions(json_output=True, response_schema=schema),
        stream_timeout=ctx.stream_timeout(payload),
        task_label=label,
        policy=ctx.retry_policy(),
    )
    return parse_json_safe(response.text)


async def handle_synthesis(payload: StagePayload, ctx: StageContext) -> StrategicPlan:
    """Run the requested synthesis sub-tasks.

    Raises:
        SynthesisError: When every requested sub-task failed after retries.
    """
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)
    requested: list[SubTask] = [payload.sub_task] if payload.sub_task else ["strategy", "questions"]

    calls = {
        "strategy": lambda: _generate_json(
            ctx,
            payload,
            prompts.strategy_prompt(uni, dept, payload.curriculum, payload.trends, payload.professors, datetime.now().year),
            STRATEGY_SCHEMA,
            "Strategy Synthesis",
        ),
        "questions": lambda: _generate_json(
            ctx,
            payload,
            prompts.questions_prompt(uni, dept, payload.curriculum, payload.trends),
            QUESTIONS_SCHEMA,
            "Question Synthesis",
        ),
    }
    outcomes = await asyncio.gather(*(calls[task]() for task in requested), return_exceptions=True)

    results: dict[str, dict[str, Any]] = {}
    failures: dict[str, BaseException] = {}
    for task, outcome in zip(requested, outcomes):
        if isinstance(outcome, Exception):
            failures[task] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[task] = outcome

    for task, error in failures.items():
        log.warning("stage.synthesis.subtask_failed", sub_task=task, error=str(error))
    if len(failures) == len(requested):
        raise SynthesisError(reason="; ".join(f"{task}: {error}" for task, error in failures.items()))

    plan = StrategicPlan()
    if "strategy" in requested:
        raw = results.get("strategy", {})
        plan.core_strategy = _text(raw.get("coreStrategy")) or STRATEGY_FAILURE_PLACEHOLDER
        plan.core_concepts = coerce_concepts(raw.get("coreConcepts"))
    if "questions" in requested:
        plan.questions = coerce_question_set(results.get("questions", {}))

    log.info(
        "stage.synthesis.completed",
        sub_tasks=",".join(requested),
        concepts=len(plan.core_concepts),
        questions=sum(len(getattr(plan.questions, tier)) for tier in QUESTION_TIERS),
    )
    return plan
