"""FastAPI application exposing the interview prep stages over HTTP."""

import math
from uuid import uuid4

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from interview_prep import __version__
from interview_prep.config import Settings, get_settings
from interview_prep.exceptions import (
    ConfigurationError,
    PrepPipelineError,
    RateLimitExceededError,
    ServiceDisabledError,
)
from interview_prep.llm.provider import GenerativeProvider, PydanticAIProvider
from interview_prep.logging import bind_context_vars, clear_context_fields, configure_structlog, get_logger
from interview_prep.models import StagePayload, StageRequest, WireModel
from interview_prep.rate_limiter import KeyedRateLimiter
from interview_prep.stages import STAGE_HANDLERS, StageContext

log = get_logger("interview_prep.server")


# --- Request/Response schemas ---


class ErrorResponse(WireModel):
    """Structured error response."""

    error: str = Field(
        description="Error type (InvalidAction, InvalidPayload, RateLimitExceededError, ServiceDisabledError, ConfigurationError, InternalServerError)",
        examples=["RateLimitExceededError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["Too many requests. Please try again later."],
    )
    retry_after: int | None = Field(default=None, description="Seconds to wait before retrying (429 only)")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status", examples=["ok"])
    version: str = Field(default="", description="Service version (only included in /health endpoint)")


# --- Exception handlers ---

_SAFE_ERROR_MESSAGES: dict[str, str] = {
    "ServiceDisabledError": "Server is currently closed by admin.",
    "RateLimitExceededError": "Too many requests. Please try again later.",
    "ConfigurationError": "Server configuration error.",
    "SynthesisError": "Unable to generate interview strategy. Please try again.",
    "StageTimeoutError": "The request timed out. Please try again.",
    "StreamTimeoutError": "The request timed out. Please try again.",
}
_GENERIC_ERROR_MESSAGE = "Internal Server Error. Please try again later."

_ERROR_STATUS_CODES: dict[type[PrepPipelineError], int] = {
    ServiceDisabledError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RateLimitExceededError: status.HTTP_429_TOO_MANY_REQUESTS,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _error_response(status_code: int, error: str, detail: str, retry_after: int | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, detail=detail, retry_after=retry_after)
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


async def _handle_pipeline_error(request: Request, exc: PrepPipelineError) -> JSONResponse:
    error_type = type(exc).__name__
    status_code = _ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    log.warning("request.pipeline_error", error_type=error_type, status_code=status_code, detail=str(exc))
    retry_after = max(1, math.ceil(exc.retry_after)) if isinstance(exc, RateLimitExceededError) else None
    return _error_response(
        status_code, error_type, _SAFE_ERROR_MESSAGES.get(error_type, _GENERIC_ERROR_MESSAGE), retry_after
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError", _GENERIC_ERROR_MESSAGE)


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# --- App factory ---


def get_app(
    settings: Settings | None = None,
    provider: GenerativeProvider | None = None,
    rate_limiter: KeyedRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators live on ``app.state`` for the application's lifetime; pass
    them explicitly in tests.
    Logging is configured for JSON output at ``settings.logging_level``.
    """
    settings = settings or get_settings()
    configure_structlog(level_name=settings.logging_level)
    application = FastAPI(
        title="Interview Prep Report Service",
        description="""
Grounded research and synthesis stages for university interview preparation.

## Stages

1. **validate** - Checks the university/department pair and suggests typo corrections
2. **curriculum** / **trends** - Grounded research with review and fact-check passes
3. **professors** - Faculty discovery and per-professor research
4. **synthesis** - Interview strategy and tiered anticipated questions
5. **audit** - Quality score for gathered research
        """,
        version=__version__,
    )
    application.state.settings = settings
    application.state.provider = provider or PydanticAIProvider()
    application.state.rate_limiter = rate_limiter or KeyedRateLimiter(
        max_requests=settings.rate_limit_max_requests, window=settings.rate_limit_window
    )
    application.state.stage_context = StageContext(provider=application.state.provider, settings=settings)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    application.add_exception_handler(PrepPipelineError, _handle_pipeline_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    @application.options("/api/gemini", include_in_schema=False)
    async def stage_options() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @application.post(
        "/api/gemini",
        status_code=status.HTTP_200_OK,
        summary="Run a pipeline stage",
        tags=["Stages"],
        responses={
            400: {"model": ErrorResponse, "description": "Unknown action or malformed payload"},
            429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
            500: {"model": ErrorResponse, "description": "Missing credentials or stage failure"},
            503: {"model": ErrorResponse, "description": "Service disabled"},
        },
    )
    async def run_stage(request: Request) -> JSONResponse:
        clear_context_fields()
        bind_context_vars(correlation_id=str(uuid4())[:8])
        state = request.app.state

        if not state.settings.api_enabled:
            raise ServiceDisabledError()

        client = _client_key(request)
        if not state.rate_limiter.check(client):
            raise RateLimitExceededError(retry_after=state.rate_limiter.retry_after(client))

        if not state.settings.api_key:
            log.error("request.missing_api_key")
            raise ConfigurationError(reason="API_KEY is not set")

        try:
            stage_request = StageRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            return _error_response(status.HTTP_400_BAD_REQUEST, "InvalidPayload", "Request body must be {action, payload}.")

        handler = STAGE_HANDLERS.get(stage_request.action)
        if handler is None:
            return _error_response(status.HTTP_400_BAD_REQUEST, "InvalidAction", "Invalid action")

        try:
            payload = StagePayload.model_validate(stage_request.payload)
        except ValidationError as e:
            log.warning("request.validation_error", action=stage_request.action, detail=str(e))
            return _error_response(status.HTTP_400_BAD_REQUEST, "InvalidPayload", "Invalid payload")

        bind_context_vars(action=stage_request.action)
        log.info("request.stage.started", client=client)
        result = await handler(payload, state.stage_context)
        return JSONResponse(content=result.model_dump(mode="json", by_alias=True))

    @application.get("/health", response_model=HealthResponse, tags=["Health"], summary="Health Check")
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @application.get("/health/liveness", response_model=HealthResponse, tags=["Health"], summary="Liveness Probe")
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get("/health/readiness", response_model=HealthResponse, tags=["Health"], summary="Readiness Probe")
    async def readiness() -> HealthResponse:
        return HealthResponse(status="ready")

    return application


app = get_app()
