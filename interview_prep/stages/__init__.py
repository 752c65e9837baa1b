"""Stage handlers and their dispatch table."""

from typing import Awaitable, Callable

from pydantic import BaseModel

from interview_prep.models import StagePayload
from interview_prep.stages.audit import handle_audit
from interview_prep.stages.base import StageContext
from interview_prep.stages.professors import handle_professors
from interview_prep.stages.research import handle_curriculum, handle_trends
from interview_prep.stages.synthesis import handle_synthesis
from interview_prep.stages.validate import handle_validate

StageHandler = Callable[[StagePayload, StageContext], Awaitable[BaseModel]]

STAGE_HANDLERS: dict[str, StageHandler] = {
    "validate": handle_validate,
    "curriculum": handle_curriculum,
    "professors": handle_professors,
    "trends": handle_trends,
    "synthesis": handle_synthesis,
    "audit": handle_audit,
}

__all__ = [
    "STAGE_HANDLERS",
    "StageContext",
    "StageHandler",
    "handle_audit",
    "handle_curriculum",
    "handle_professors",
    "handle_synthesis",
    "handle_trends",
    "handle_validate",
]
