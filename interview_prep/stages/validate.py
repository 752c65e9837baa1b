"""Validate stage: check that the university/department pair exists."""

from interview_prep.json_repair import parse_json_safe
from interview_prep.llm.provider import GenerationOptions
from interview_prep.logging import get_logger
from interview_prep.models import StagePayload, ValidationResult
from interview_prep.sanitize import sanitize_input
from interview_prep.stages import prompts
from interview_prep.stages.base import StageContext
from interview_prep.timeouts import call_with_timeout

log = get_logger("interview_prep.stages.validate")

FAIL_OPEN = ValidationResult(is_valid=True, is_typo=False)


def _coerce_validation(raw: dict) -> ValidationResult:
    def _text(key: str) -> str | None:
        value = raw.get(key)
        return (value.strip() or None) if isinstance(value, str) else None

    return ValidationResult(
        is_valid=raw.get("isValid") is not False,
        is_typo=raw.get("isTypo") is True,
        corrected_university=_text("correctedUniversity"),
        corrected_department=_text("correctedDepartment"),
        message=_text("message"),
    )


async def handle_validate(payload: StagePayload, ctx: StageContext) -> ValidationResult:
    """Single-shot grounded check. Fails open: any error yields a permissive result."""
    uni = sanitize_input(payload.uni)
    dept = sanitize_input(payload.dept)

    try:
        response = await call_with_timeout(
            ctx.provider.generate_once(
                ctx.model_for(payload, ctx.settings.validate_model),
                prompts.validate_prompt(uni, dept),
                GenerationOptions(grounded=True, json_output=True),
            ),
            ctx.stream_timeout(payload),
            "Validation timeout",
        )
        result = _coerce_validation(parse_json_safe(response.text))
    except Exception as e:
        log.warning("stage.validate.failed_open", error=str(e))
        return FAIL_OPEN.model_copy()

    log.info("stage.validate.completed", is_valid=result.is_valid, is_typo=result.is_typo)
    return result
