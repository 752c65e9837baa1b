"""Curriculum and interview-trend research stages."""

from time import perf_counter

from interview_prep.llm.provider import GenerationOptions
from interview_prep.llm.sources import extract_sources
from interview_prep.llm.streaming import generate_with_smart_retry
from interview_prep.logging import get_logger
from interview_prep.models import ResearchResult, StagePayload
from interview_prep.sanitize import sanitize_input
from interview_prep.stages import prompts
from interview_prep.stages.agents import fact_check_and_refine, review_content
from interview_prep.stages.base import StageContext

log = get_logger("interview_prep.stages.research")


async def _grounded_research(
    ctx: StageContext,
    payload: StagePayload,
    prompt: str,
    task_label: str,
    fact_check_context: str,
) -> ResearchResult:
    """Grounded generation -> source extraction -> review pass -> fact-check pass."""
    started = perf_counter()
    response = await generate_with_smart_retry(
        ctx.provider,
        ctx.model_for(payload, ctx.settings.research_model),
        prompt,
        GenerationOptions(grounded=True),
        stream_timeout=ctx.stream_timeout(payload),
        task_label=task_label,
        policy=ctx.retry_policy(),
    )
    text, sources = extract_sources(response)
    formatted = await review_content(ctx, text, task_label)
    verified = await fact_check_and_refine(ctx, formatted, fact_check_context, sources)

    log.info(
        "stage.research.completed",
        task=task_label,
        sources=len(sources),
        duration_ms=int((perf_counter() - started) * 1000),
    )
    return ResearchResult(text=verified, sources=sources)


async def handle_curriculum(payload: StagePayload, ctx: StageContext) -> ResearchResult:
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)
    return await _grounded_research(
        ctx,
        payload,
        prompts.curriculum_prompt(uni, dept, ctx.time_context()),
        "Curriculum Analysis",
        f"{uni} {dept} Curriculum",
    )


async def handle_trends(payload: StagePayload, ctx: StageContext) -> ResearchResult:
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)
    return await _grounded_research(
        ctx,
        payload,
        prompts.trends_prompt(uni, dept, ctx.time_context()),
        "Interview Trends",
        f"{uni} {dept} Interview Trends",
    )
