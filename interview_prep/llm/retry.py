"""Retry/fallback decision logic for generation calls.

The policy is a pure function of the attempt state and the category of the
last failure, so it can be tested without any network calls:

    attempt 1 (original model)
      recoverable failure -> RetrySameModel (after ``retry_delay``)
    attempt 2 (original model)
      recoverable failure -> SwitchModel(fallback) unless fallback == original
    attempt 3 (fallback model)
      any failure         -> GiveUp

Non-recoverable failures give up immediately.
"""

from dataclasses import dataclass
from enum import Enum

import httpx

from interview_prep.exceptions import ProviderError, StageTimeoutError

RECOVERABLE_STATUS_CODES = frozenset({500, 503})


class ErrorCategory(str, Enum):
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    TRANSPORT = "transport"
    NON_RECOVERABLE = "non_recoverable"

    @property
    def recoverable(self) -> bool:
        return self is not ErrorCategory.NON_RECOVERABLE


@dataclass(frozen=True)
class RetryPolicy:
    fallback_model: str | None = None
    retry_delay: float = 2.0
    stream_timeout: float = 100.0
    inactivity_timeout: float = 20.0


@dataclass(frozen=True)
class RetryState:
    attempt: int
    model: str
    original_model: str
    fallback_model: str | None = None


@dataclass(frozen=True)
class RetrySameModel:
    delay: float


@dataclass(frozen=True)
class SwitchModel:
    model: str


@dataclass(frozen=True)
class GiveUp:
    pass


RetryAction = RetrySameModel | SwitchModel | GiveUp


def _status_code_of(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def categorize_error(error: BaseException) -> ErrorCategory:
    """Map an exception raised by a generation attempt to a retry category."""
    if isinstance(error, (StageTimeoutError, TimeoutError, httpx.TimeoutException)):
        return ErrorCategory.TIMEOUT

    status = _status_code_of(error)
    if status is not None:
        return ErrorCategory.SERVER_ERROR if status in RECOVERABLE_STATUS_CODES else ErrorCategory.NON_RECOVERABLE

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorCategory.TRANSPORT
    if isinstance(error, ProviderError):
        return ErrorCategory.NON_RECOVERABLE
    if "fetch failed" in str(error).lower():
        return ErrorCategory.TRANSPORT
    return ErrorCategory.NON_RECOVERABLE


def next_action(state: RetryState, category: ErrorCategory, retry_delay: float = 2.0) -> RetryAction:
    """Decide what to do after attempt ``state.attempt`` failed with ``category``."""
    if not category.recoverable:
        return GiveUp()

    if state.attempt == 1 and state.model == state.original_model:
        return RetrySameModel(delay=retry_delay)

    on_original = state.model == state.original_model
    if on_original and state.fallback_model and state.fallback_model != state.original_model:
        return SwitchModel(model=state.fallback_model)

    return GiveUp()
