"""Shared collaborators for stage handlers."""

from dataclasses import dataclass
from datetime import datetime

from interview_prep.config import Settings, build_time_context
from interview_prep.llm.provider import GenerativeProvider
from interview_prep.llm.retry import RetryPolicy
from interview_prep.models import StagePayload


@dataclass(frozen=True)
class StageContext:
    """Everything a handler needs besides its payload. Handlers never touch controller state."""

    provider: GenerativeProvider
    settings: Settings

    def model_for(self, payload: StagePayload, default: str) -> str:
        override = payload.config.model if payload.config else None
        return self.settings.resolve_model(override, default)

    def stream_timeout(self, payload: StagePayload) -> float:
        override = payload.config.timeout_seconds if payload.config else None
        return override or self.settings.stream_timeout

    def call_delay(self, payload: StagePayload) -> float:
        override = payload.config.delay_seconds if payload.config else None
        return self.settings.professor_analysis_delay if override is None else override

    def retry_policy(self) -> RetryPolicy:
        return self.settings.retry_policy()

    def time_context(self) -> str:
        return build_time_context(datetime.now())
