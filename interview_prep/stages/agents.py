"""Secondary review and fact-check passes applied to research prose."""

from interview_prep.llm.provider import GenerationOptions
from interview_prep.logging import get_logger
from interview_prep.models import Source
from interview_prep.stages import prompts
from interview_prep.stages.base import StageContext
from interview_prep.timeouts import call_with_timeout

log = get_logger("interview_prep.stages.agents")

MIN_FACT_CHECK_LENGTH = 50


async def review_content(ctx: StageContext, content: str, context: str) -> str:
    """Clean up formatting and language. Returns ``content`` unchanged on any failure."""
    if not content:
        return content
    try:
        response = await call_with_timeout(
            ctx.provider.generate_once(
                ctx.settings.resolve_model(ctx.settings.research_model),
                prompts.review_prompt(content, context),
                GenerationOptions(system_instruction="Output only the corrected Markdown text."),
            ),
            ctx.settings.default_timeout,
            f"Review timeout for {context}",
        )
    except Exception as e:
        log.warning("agents.review.failed", context=context, error=str(e))
        return content
    return response.text or content


async def fact_check_and_refine(ctx: StageContext, content: str, context: str, sources: list[Source]) -> str:
    """Remove or generalise claims the cited sources do not support.

    Short content is returned as-is, as is the input on any failure.
    """
    if not content or len(content) < MIN_FACT_CHECK_LENGTH:
        return content
    try:
        response = await call_with_timeout(
            ctx.provider.generate_once(
                ctx.settings.resolve_model(ctx.settings.fact_check_model),
                prompts.fact_check_prompt(content, context, sources, ctx.time_context()),
                GenerationOptions(system_instruction="Output only the verified Markdown text."),
            ),
            ctx.settings.default_timeout,
            f"Fact-check timeout for {context}",
        )
    except Exception as e:
        log.warning("agents.fact_check.failed", context=context, error=str(e))
        return content
    return response.text or content
