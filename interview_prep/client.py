"""Backend clients used by the pipeline controller to run individual stages."""

from typing import Protocol, TypeVar, cast, runtime_checkable

import httpx
from pydantic import BaseModel, ValidationError

from interview_prep.config import Settings
from interview_prep.exceptions import BackendError, RateLimitExceededError
from interview_prep.llm.provider import GenerativeProvider
from interview_prep.logging import get_logger
from interview_prep.models import (
    AuditResult,
    Professor,
    ProfessorAnalysisResult,
    ResearchResult,
    StageAction,
    StagePayload,
    StrategicPlan,
    SubTask,
    ValidationResult,
)
from interview_prep.stages import STAGE_HANDLERS, StageContext

log = get_logger("interview_prep.client")

ResultT = TypeVar("ResultT", bound=BaseModel)


@runtime_checkable
class BackendClient(Protocol):
    async def validate(self, uni: str, dept: str) -> ValidationResult: ...

    async def curriculum(self, uni: str, dept: str) -> ResearchResult: ...

    async def professors(self, uni: str, dept: str) -> ProfessorAnalysisResult: ...

    async def trends(self, uni: str, dept: str) -> ResearchResult: ...

    async def synthesis(
        self,
        uni: str,
        dept: str,
        curriculum: str,
        professors: list[Professor],
        trends: str,
        sub_task: SubTask | None = None,
    ) -> StrategicPlan: ...

    async def audit(
        self, uni: str, dept: str, curriculum: str, professors: list[Professor], trends: str
    ) -> AuditResult: ...


class _StageCalls:
    """Typed stage methods on top of a single ``_call`` transport hook."""

    async def _call(self, action: StageAction, payload: StagePayload, result_type: type[ResultT]) -> ResultT:
        raise NotImplementedError

    async def validate(self, uni: str, dept: str) -> ValidationResult:
        return await self._call("validate", StagePayload(uni=uni, dept=dept), ValidationResult)

    async def curriculum(self, uni: str, dept: str) -> ResearchResult:
        return await self._call("curriculum", StagePayload(uni=uni, dept=dept), ResearchResult)

    async def professors(self, uni: str, dept: str) -> ProfessorAnalysisResult:
        return await self._call("professors", StagePayload(uni=uni, dept=dept), ProfessorAnalysisResult)

    async def trends(self, uni: str, dept: str) -> ResearchResult:
        return await self._call("trends", StagePayload(uni=uni, dept=dept), ResearchResult)

    async def synthesis(
        self,
        uni: str,
        dept: str,
        curriculum: str,
        professors: list[Professor],
        trends: str,
        sub_task: SubTask | None = None,
    ) -> StrategicPlan:
        payload = StagePayload(
            uni=uni, dept=dept, curriculum=curriculum, professors=professors, trends=trends, sub_task=sub_task
        )
        return await self._call("synthesis", payload, StrategicPlan)

    async def audit(
        self, uni: str, dept: str, curriculum: str, professors: list[Professor], trends: str
    ) -> AuditResult:
        payload = StagePayload(uni=uni, dept=dept, curriculum=curriculum, professors=professors, trends=trends)
        return await self._call("audit", payload, AuditResult)


class HttpBackendClient(_StageCalls):
    """Posts ``{action, payload}`` to a running service's ``/api/gemini`` endpoint.

    Raises:
        RateLimitExceededError: When the service answers 429.
        BackendError: On any other non-2xx answer, transport failure or malformed body.
    """

    def __init__(self, base_url: str, *, timeout: float = 300.0, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpBackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _call(self, action: StageAction, payload: StagePayload, result_type: type[ResultT]) -> ResultT:
        body = {"action": action, "payload": payload.model_dump(mode="json", by_alias=True, exclude_none=True)}
        try:
            response = await self._client.post("/api/gemini", json=body)
        except httpx.HTTPError as e:
            log.warning("client.request.transport_failed", action=action, error=str(e))
            raise BackendError(action, None, str(e)) from e

        if response.status_code == 429:
            raise RateLimitExceededError(retry_after=_retry_after(response))
        if response.is_error:
            log.warning("client.request.failed", action=action, status_code=response.status_code)
            raise BackendError(action, response.status_code, response.reason_phrase)

        try:
            return result_type.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError(action, response.status_code, "malformed response body") from e


def _retry_after(response: httpx.Response) -> float:
    header = response.headers.get("Retry-After")
    if header and header.isdigit():
        return float(header)
    try:
        return float(response.json().get("retryAfter", 0))
    except (ValueError, AttributeError, TypeError):
        return 0.0


class LocalBackendClient(_StageCalls):
    """Runs stage handlers in-process, bypassing HTTP."""

    def __init__(self, provider: GenerativeProvider, settings: Settings) -> None:
        self._context = StageContext(provider=provider, settings=settings)

    async def _call(self, action: StageAction, payload: StagePayload, result_type: type[ResultT]) -> ResultT:
        result = await STAGE_HANDLERS[action](payload, self._context)
        return cast(ResultT, result)
