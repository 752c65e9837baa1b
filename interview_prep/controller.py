"""Client-side run orchestrator: validate, research in parallel, review, synthesize."""

import asyncio
import math
from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Callable
from uuid import uuid4

from interview_prep.cancellation import CANCELLED, CancellationToken
from interview_prep.client import BackendClient
from interview_prep.events import (
    CompleteEvent,
    ErrorEvent,
    PausedEvent,
    PipelineEvent,
    StepStatusEvent,
    ValidationEvent,
)
from interview_prep.exceptions import RateLimitExceededError
from interview_prep.logging import bind_context_vars, get_logger, unbind_context_vars
from interview_prep.models import (
    AnalysisStep,
    AuditResult,
    FullReport,
    ResearchCache,
    StepStatus,
    ValidationResult,
)
from interview_prep.rate_limiter import SlidingWindowRateLimiter
from interview_prep.sanitize import is_allowed_input

log = get_logger("interview_prep.controller")

RESEARCH_STEP = "research"
REVIEW_STEP = "review"
SYNTHESIS_STEP = "synthesis"

STEP_LABELS = {
    RESEARCH_STEP: "Parallel Research",
    REVIEW_STEP: "Review & Format",
    SYNTHESIS_STEP: "Strategy Synthesis",
}

REQUIRED_INPUT_MESSAGE = "대학교와 학과를 모두 입력해주세요."
INVALID_CHARACTERS_MESSAGE = "특수문자나 허용되지 않은 문자가 포함되어 있습니다."
RUN_FAILED_MESSAGE = "분석 중 오류가 발생했습니다. 잠시 후 다시 시도해주세요."


def rate_limited_message(retry_after: float) -> str:
    return f"요청이 너무 많습니다. {math.ceil(retry_after)}초 후에 다시 시도해주세요."


def initial_steps() -> list[AnalysisStep]:
    return [AnalysisStep(id=step_id, label=label) for step_id, label in STEP_LABELS.items()]


class RunStatus(str, Enum):
    COMPLETED = "completed"
    PAUSED = "paused"
    FAILED = "failed"
    INVALID_INPUT = "invalid_input"
    NEEDS_CONFIRMATION = "needs_confirmation"
    RATE_LIMITED = "rate_limited"


@dataclass
class RunOutcome:
    status: RunStatus
    report: FullReport | None = None
    validation: ValidationResult | None = None
    message: str | None = None
    retry_after: float | None = None


class PipelineController:
    """Owns the step list, the research cache and the final report for one session.

    Stage handlers never see this state. Only one run is active at a time; its
    cancellation token is replaced on every start, so results of an abandoned
    run can never reach the step list or the cache.

    Cancellation is checked at phase boundaries only: the token races the
    research, audit, review pause and synthesis phases, but is not passed into
    stage handlers or the backend. After ``stop()`` an in-flight backend request
    (an HTTP call through ``HttpBackendClient``, for example) runs to completion
    in the background and its result is discarded.

    Args:
        backend: Client used to run each stage.
        rate_limiter: Session-wide request window (default 3 requests per 60 s).
        review_delay: Pause between research and synthesis, in seconds.
        run_audit: Score the research before synthesis and attach it to the report.
        on_event: Synchronous callback receiving every progress event.
    """

    def __init__(
        self,
        backend: BackendClient,
        *,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        review_delay: float = 0.8,
        run_audit: bool = False,
        on_event: Callable[[PipelineEvent], None] | None = None,
    ) -> None:
        self.backend = backend
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(max_requests=3, window=60.0)
        self.review_delay = review_delay
        self.run_audit = run_audit
        self._on_event = on_event

        self.steps: list[AnalysisStep] = initial_steps()
        self.research_cache: ResearchCache | None = None
        self.report: FullReport | None = None
        self.pending_validation: ValidationResult | None = None
        self.university = ""
        self.department = ""
        self._token: CancellationToken | None = None

    # --- State helpers ---

    @property
    def is_running(self) -> bool:
        return self._token is not None

    def step(self, step_id: str) -> AnalysisStep:
        return next(s for s in self.steps if s.id == step_id)

    def _emit(self, event: PipelineEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _set_step(self, step_id: str, status: StepStatus) -> None:
        step = self.step(step_id)
        step.status = status
        self._emit(StepStatusEvent(data={"step": step.id, "label": step.label, "status": status.value}))

    def _reset_steps(self) -> None:
        self.steps = initial_steps()
        for step in self.steps:
            self._emit(StepStatusEvent(data={"step": step.id, "label": step.label, "status": step.status.value}))

    # --- Entry points ---

    async def submit(self, uni: str, dept: str) -> RunOutcome:
        """Check quota and input, validate semantically, then run the full pipeline."""
        uni, dept = uni.strip(), dept.strip()
        if not uni or not dept:
            return RunOutcome(RunStatus.INVALID_INPUT, message=REQUIRED_INPUT_MESSAGE)

        self.pending_validation = None
        self.research_cache = None

        if not self.rate_limiter.check():
            retry_after = self.rate_limiter.retry_after()
            log.warning("controller.rate_limited", retry_after=retry_after)
            return RunOutcome(
                RunStatus.RATE_LIMITED, message=rate_limited_message(retry_after), retry_after=retry_after
            )

        if not is_allowed_input(uni) or not is_allowed_input(dept):
            rejected = ValidationResult(is_valid=False, is_typo=False, message=INVALID_CHARACTERS_MESSAGE)
            self._emit(ValidationEvent(data=rejected.to_wire()))
            return RunOutcome(RunStatus.INVALID_INPUT, validation=rejected, message=INVALID_CHARACTERS_MESSAGE)

        try:
            validation = await self.backend.validate(uni, dept)
        except Exception as e:
            log.warning("controller.validation.skipped", error=str(e))
            return await self.start_analysis(uni, dept)

        if not validation.is_valid:
            self._emit(ValidationEvent(data=validation.to_wire()))
            return RunOutcome(RunStatus.INVALID_INPUT, validation=validation, message=validation.message)

        if validation.is_typo and validation.corrected_university:
            self.pending_validation = validation
            self.university, self.department = uni, dept
            self._emit(ValidationEvent(data=validation.to_wire()))
            log.info("controller.validation.typo_suspected", corrected=validation.corrected_university)
            return RunOutcome(RunStatus.NEEDS_CONFIRMATION, validation=validation, message=validation.message)

        return await self.start_analysis(uni, dept)

    async def confirm_correction(self) -> RunOutcome:
        """Accept the suggested spelling and start the run with it."""
        pending = self._take_pending()
        uni = pending.corrected_university or self.university
        dept = pending.corrected_department or self.department
        return await self.start_analysis(uni, dept)

    async def override_validation(self) -> RunOutcome:
        """Ignore the suggested spelling and start the run with the input as typed."""
        self._take_pending()
        return await self.start_analysis(self.university, self.department)

    def _take_pending(self) -> ValidationResult:
        if self.pending_validation is None:
            raise RuntimeError("No validation result is awaiting confirmation")
        pending, self.pending_validation = self.pending_validation, None
        return pending

    async def resume(self) -> RunOutcome:
        """Restart the last run, skipping research when a snapshot is cached."""
        return await self.start_analysis(self.university, self.department, use_cache=True)

    def stop(self) -> None:
        """Cancel the active run and mark loading steps paused. Safe to call repeatedly."""
        token, self._token = self._token, None
        if token is not None:
            token.cancel()
            log.info("controller.run.stop_requested")
        for step in self.steps:
            if step.status == StepStatus.LOADING:
                self._set_step(step.id, StepStatus.PAUSED)

    def reset(self) -> None:
        """Drop everything from the session: active run, report, cache and input."""
        self.stop()
        self.steps = initial_steps()
        self.report = None
        self.research_cache = None
        self.pending_validation = None
        self.university = ""
        self.department = ""

    # --- Pipeline ---

    async def _research(self, uni: str, dept: str) -> ResearchCache:
        async with asyncio.TaskGroup() as tg:
            curriculum = tg.create_task(self.backend.curriculum(uni, dept))
            professors = tg.create_task(self.backend.professors(uni, dept))
            trends = tg.create_task(self.backend.trends(uni, dept))
        return ResearchCache(curriculum=curriculum.result(), professors=professors.result(), trends=trends.result())

    async def _audit(self, uni: str, dept: str, cache: ResearchCache) -> AuditResult | None:
        try:
            return await self.backend.audit(
                uni, dept, cache.curriculum.text, cache.professors.professors, cache.trends.text
            )
        except Exception as e:
            log.warning("controller.audit.skipped", error=str(e))
            return None

    async def start_analysis(self, uni: str, dept: str, use_cache: bool = False) -> RunOutcome:
        """Run research (unless resuming from cache), the review pause and synthesis.

        Returns a PAUSED outcome when ``stop`` is called mid-run and FAILED on any
        other error. Whatever the outcome, no step is left loading.
        """
        token = CancellationToken()
        if self._token is not None:
            self._token.cancel()
        self._token = token
        self.university, self.department = uni, dept
        self.report = None

        bind_context_vars(correlation_id=str(uuid4())[:8])
        started = perf_counter()
        log.info("controller.run.started", university=uni, department=dept, use_cache=use_cache)

        try:
            cache = self.research_cache if use_cache else None
            if cache is None:
                self.research_cache = None
                self._reset_steps()
                self._set_step(RESEARCH_STEP, StepStatus.LOADING)
                research = await token.wait(self._research(uni, dept))
                if research is CANCELLED:
                    return self._paused(token)
                cache = self.research_cache = research
                self._set_step(RESEARCH_STEP, StepStatus.COMPLETED)
                log.info("controller.research.completed", duration_ms=int((perf_counter() - started) * 1000))
            else:
                self._set_step(RESEARCH_STEP, StepStatus.COMPLETED)
                self._set_step(REVIEW_STEP, StepStatus.IDLE)
                self._set_step(SYNTHESIS_STEP, StepStatus.IDLE)
                log.info("controller.research.cache_hit")

            self._set_step(REVIEW_STEP, StepStatus.LOADING)
            audit: AuditResult | None = None
            if self.run_audit:
                audit_outcome = await token.wait(self._audit(uni, dept, cache))
                if audit_outcome is CANCELLED:
                    return self._paused(token)
                audit = audit_outcome
            if not await token.sleep(self.review_delay):
                return self._paused(token)
            self._set_step(REVIEW_STEP, StepStatus.COMPLETED)

            self._set_step(SYNTHESIS_STEP, StepStatus.LOADING)
            plan = await token.wait(
                self.backend.synthesis(
                    uni, dept, cache.curriculum.text, cache.professors.professors, cache.trends.text
                )
            )
            if plan is CANCELLED:
                return self._paused(token)
            self._set_step(SYNTHESIS_STEP, StepStatus.COMPLETED)

            self.report = FullReport(
                university=uni,
                department=dept,
                curriculum_analysis=cache.curriculum,
                professor_analysis=cache.professors,
                interview_trends=cache.trends,
                strategy=plan,
                audit=audit,
            )
            total_ms = int((perf_counter() - started) * 1000)
            log.info("controller.run.completed", total_ms=total_ms)
            self._emit(CompleteEvent(data={"university": uni, "department": dept, "total_ms": total_ms}))
            return RunOutcome(RunStatus.COMPLETED, report=self.report)

        except Exception as e:
            return self._failed(e)
        finally:
            if self._token is token:
                self._token = None
            unbind_context_vars("correlation_id")

    def _paused(self, token: CancellationToken) -> RunOutcome:
        # A run superseded by a newer one must not touch the newer run's steps.
        if self._token is None or self._token is token:
            for step in self.steps:
                if step.status == StepStatus.LOADING:
                    self._set_step(step.id, StepStatus.PAUSED)
        resumable = self.research_cache is not None
        log.info("controller.run.paused", resumable=resumable)
        self._emit(PausedEvent(data={"resumable": resumable}))
        return RunOutcome(RunStatus.PAUSED)

    def _failed(self, error: Exception) -> RunOutcome:
        if isinstance(error, ExceptionGroup):
            error = error.exceptions[0]
        log.error("controller.run.failed", error=str(error), error_type=type(error).__name__)
        self._set_step(RESEARCH_STEP, StepStatus.ERROR)
        self._set_step(SYNTHESIS_STEP, StepStatus.ERROR)
        for step in self.steps:
            if step.status == StepStatus.LOADING:
                self._set_step(step.id, StepStatus.ERROR)

        if isinstance(error, RateLimitExceededError):
            message = rate_limited_message(error.retry_after)
            self._emit(ErrorEvent(data={"error": message, "error_type": type(error).__name__}))
            return RunOutcome(RunStatus.RATE_LIMITED, message=message, retry_after=error.retry_after)

        self._emit(ErrorEvent(data={"error": RUN_FAILED_MESSAGE, "error_type": type(error).__name__}))
        return RunOutcome(RunStatus.FAILED, message=RUN_FAILED_MESSAGE)
