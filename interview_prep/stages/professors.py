"""Professor research stage: discover faculty, research each one, then summarise the field."""

import asyncio
from typing import Any

from interview_prep.json_repair import parse_json_safe
from interview_prep.llm.provider import GenerationOptions
from interview_prep.llm.sources import dedupe_sources, extract_sources
from interview_prep.llm.streaming import generate_with_smart_retry
from interview_prep.logging import get_logger
from interview_prep.models import Professor, ProfessorAnalysisResult, Source, StagePayload
from interview_prep.sanitize import sanitize_input
from interview_prep.stages import prompts
from interview_prep.stages.agents import fact_check_and_refine
from interview_prep.stages.base import StageContext

log = get_logger("interview_prep.stages.professors")

NO_KNOWLEDGE_PLACEHOLDER = "정보를 찾을 수 없습니다."
MISSING_TENDENCY_PLACEHOLDER = "공개된 자료에서 연구 성향을 확인하지 못했습니다."


def _clean_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coerce_names(raw: dict[str, Any], limit: int) -> list[str]:
    """Unique, non-empty names from ``{"names": [...]}``, capped at ``limit``."""
    names = raw.get("names")
    if not isinstance(names, list):
        return []
    unique: list[str] = []
    for name in names:
        cleaned = _clean_text(name)
        if cleaned and cleaned not in unique:
            unique.append(cleaned)
    return unique[:limit]


def coerce_professor(raw: dict[str, Any], name: str) -> Professor | None:
    """Build a Professor from a detail answer, or None when it has neither a lab nor a research tendency."""
    lab = _clean_text(raw.get("lab"))
    tendency = _clean_text(raw.get("researchTendency"))
    if not lab and not tendency:
        return None

    papers = raw.get("majorPapers")
    return Professor(
        name=_clean_text(raw.get("name")) or name,
        lab=lab,
        contact=_clean_text(raw.get("contact")),
        major_papers=[p.strip() for p in papers if isinstance(p, str) and p.strip()] if isinstance(papers, list) else [],
        research_tendency=tendency or MISSING_TENDENCY_PLACEHOLDER,
        details=_clean_text(raw.get("details")),
    )


async def _discover_names(ctx: StageContext, payload: StagePayload, uni: str, dept: str) -> list[str]:
    try:
        response = await generate_with_smart_retry(
            ctx.provider,
            ctx.model_for(payload, ctx.settings.research_model),
            prompts.professor_list_prompt(uni, dept, ctx.time_context()),
            GenerationOptions(grounded=True, json_output=True),
            stream_timeout=ctx.stream_timeout(payload),
            task_label="Professor List",
            policy=ctx.retry_policy(),
        )
    except Exception as e:
        log.warning("stage.professors.list_failed", error=str(e))
        return []
    return coerce_names(parse_json_safe(response.text), ctx.settings.max_professors)


async def _search_detail(
    ctx: StageContext, payload: StagePayload, prompt: str, name: str
) -> tuple[Professor | None, list[Source]]:
    try:
        response = await generate_with_smart_retry(
            ctx.provider,
            ctx.model_for(payload, ctx.settings.research_model),
            prompt,
            GenerationOptions(grounded=True, json_output=True),
            stream_timeout=ctx.stream_timeout(payload),
            task_label=f"Professor Detail: {name}",
            policy=ctx.retry_policy(),
        )
    except Exception as e:
        log.warning("stage.professors.detail_failed", professor=name, error=str(e))
        return None, []
    text, sources = extract_sources(response)
    return coerce_professor(parse_json_safe(text), name), sources


async def _research_professor(
    ctx: StageContext, payload: StagePayload, name: str, uni: str, dept: str, start_delay: float
) -> tuple[Professor | None, list[Source]]:
    if start_delay > 0:
        await asyncio.sleep(start_delay)

    strict_prompt = prompts.professor_detail_prompt(name, uni, dept, ctx.time_context())
    professor, sources = await _search_detail(ctx, payload, strict_prompt, name)
    if professor is None or not professor.lab:
        relaxed, relaxed_sources = await _search_detail(
            ctx, payload, prompts.professor_relaxed_prompt(name, uni, dept), name
        )
        if relaxed is not None:
            professor, sources = relaxed, relaxed_sources
    return professor, sources


async def _major_knowledge(
    ctx: StageContext, payload: StagePayload, dept: str, professors: list[Professor]
) -> tuple[str, list[Source]]:
    try:
        response = await generate_with_smart_retry(
            ctx.provider,
            ctx.model_for(payload, ctx.settings.research_model),
            prompts.major_knowledge_prompt(dept, professors, ctx.time_context()),
            GenerationOptions(grounded=True),
            stream_timeout=ctx.stream_timeout(payload),
            task_label="Major Knowledge Analysis",
            policy=ctx.retry_policy(),
        )
    except Exception as e:
        log.warning("stage.professors.major_knowledge_failed", error=str(e))
        return NO_KNOWLEDGE_PLACEHOLDER, []

    text, sources = extract_sources(response)
    verified = await fact_check_and_refine(ctx, text, f"General {dept} Knowledge", sources)
    return verified or NO_KNOWLEDGE_PLACEHOLDER, sources


async def handle_professors(payload: StagePayload, ctx: StageContext) -> ProfessorAnalysisResult:
    """Discover up to ``max_professors`` names, research each with staggered starts, then summarise.

    Detail queries start ``call_delay`` seconds apart to stay under upstream
    rate limits; they may still finish in any order. Results with neither a lab
    nor a research tendency are dropped. An empty name list short-circuits.
    """
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)

    names = await _discover_names(ctx, payload, uni, dept)
    if not names:
        log.info("stage.professors.no_names", uni=uni, dept=dept)
        return ProfessorAnalysisResult(major_knowledge_analysis=NO_KNOWLEDGE_PLACEHOLDER)

    step = ctx.call_delay(payload)
    async with asyncio.TaskGroup() as tg:
        tasks = [
            tg.create_task(_research_professor(ctx, payload, name, uni, dept, index * step))
            for index, name in enumerate(names)
        ]
    outcomes = [task.result() for task in tasks]

    professors = [professor for professor, _ in outcomes if professor is not None]
    detail_sources = [source for _, sources in outcomes for source in sources]
    log.info("stage.professors.details_completed", requested=len(names), accepted=len(professors))

    knowledge, knowledge_sources = await _major_knowledge(ctx, payload, dept, professors)
    return ProfessorAnalysisResult(
        professors=professors,
        major_knowledge_analysis=knowledge,
        sources=dedupe_sources([*knowledge_sources, *detail_sources]),
    )
