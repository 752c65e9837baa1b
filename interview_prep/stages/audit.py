"""Audit stage: score the gathered research before strategy generation."""

from typing import Any

from interview_prep.json_repair import parse_json_safe
from interview_prep.llm.provider import GenerationOptions
from interview_prep.llm.streaming import generate_with_smart_retry
from interview_prep.logging import get_logger
from interview_prep.models import AuditResult, AuditStatus, StagePayload
from interview_prep.sanitize import sanitize_input
from interview_prep.stages import prompts
from interview_prep.stages.base import StageContext

log = get_logger("interview_prep.stages.audit")


def audit_failed() -> AuditResult:
    return AuditResult(
        score=0,
        status=AuditStatus.WARNING,
        issues=["Audit process failed due to timeout or error."],
        feedback="Proceed with caution.",
    )


def coerce_audit(raw: dict[str, Any]) -> AuditResult:
    score = raw.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        score = 0
    status = raw.get("status")
    issues = raw.get("issues")
    feedback = raw.get("feedback")
    return AuditResult(
        score=int(min(100, max(0, score))),
        status=AuditStatus(status) if status in AuditStatus._value2member_map_ else AuditStatus.WARNING,
        issues=[i for i in issues if isinstance(i, str)] if isinstance(issues, list) else [],
        feedback=feedback if isinstance(feedback, str) else "",
    )


async def handle_audit(payload: StagePayload, ctx: StageContext) -> AuditResult:
    """Fails open: an audit that cannot run yields a zero-score WARNING instead of an error."""
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)
    prompt = prompts.audit_prompt(
        uni,
        dept,
        payload.curriculum,
        [p.to_wire() for p in payload.professors],
        payload.trends,
        ctx.time_context(),
    )
    try:
        response = await generate_with_smart_retry(
            ctx.provider,
            ctx.model_for(payload, ctx.settings.fact_check_model),
            prompt,
            GenerationOptions(json_output=True),
            stream_timeout=ctx.stream_timeout(payload),
            task_label="Audit Analysis",
            policy=ctx.retry_policy(),
        )
    except Exception as e:
        log.warning("stage.audit.failed_open", error=str(e))
        return audit_failed()

    result = coerce_audit(parse_json_safe(response.text))
    log.info("stage.audit.completed", score=result.score, status=result.status.value, issues=len(result.issues))
    return result
