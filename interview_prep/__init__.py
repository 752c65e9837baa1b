"""Interview Prep Report Service - grounded research and interview strategy synthesis"""

__version__ = "0.1.0"

from interview_prep.cancellation import CANCELLED, CancellationToken
from interview_prep.client import BackendClient, HttpBackendClient, LocalBackendClient
from interview_prep.config import Settings, get_settings
from interview_prep.controller import PipelineController, RunOutcome, RunStatus
from interview_prep.exceptions import (
    BackendError,
    ConfigurationError,
    PrepPipelineError,
    ProviderError,
    RateLimitExceededError,
    ServiceDisabledError,
    StageTimeoutError,
    StreamTimeoutError,
    SynthesisError,
)
from interview_prep.json_repair import parse_json_safe
from interview_prep.llm import PydanticAIProvider, generate_with_smart_retry
from interview_prep.models import (
    AnalysisStep,
    AuditResult,
    FullReport,
    Professor,
    ProfessorAnalysisResult,
    ResearchCache,
    ResearchResult,
    Source,
    StepStatus,
    StrategicPlan,
    ValidationResult,
)
from interview_prep.rate_limiter import KeyedRateLimiter, SlidingWindowRateLimiter
from interview_prep.timeouts import call_with_timeout

__all__ = [
    # Models
    "Source",
    "ResearchResult",
    "Professor",
    "ProfessorAnalysisResult",
    "StrategicPlan",
    "ValidationResult",
    "AuditResult",
    "FullReport",
    "StepStatus",
    "AnalysisStep",
    "ResearchCache",
    # Exceptions
    "PrepPipelineError",
    "StageTimeoutError",
    "StreamTimeoutError",
    "ProviderError",
    "SynthesisError",
    "RateLimitExceededError",
    "ServiceDisabledError",
    "ConfigurationError",
    "BackendError",
    # Core utilities
    "parse_json_safe",
    "call_with_timeout",
    "generate_with_smart_retry",
    "CancellationToken",
    "CANCELLED",
    "SlidingWindowRateLimiter",
    "KeyedRateLimiter",
    # Orchestration
    "Settings",
    "get_settings",
    "PydanticAIProvider",
    "BackendClient",
    "HttpBackendClient",
    "LocalBackendClient",
    "PipelineController",
    "RunOutcome",
    "RunStatus",
]
