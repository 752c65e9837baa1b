"""Provider boundary, retry policy and streamed generation."""

from interview_prep.llm.provider import (
    GenerationChunk,
    GenerationOptions,
    GenerationResponse,
    GenerativeProvider,
    GroundingChunk,
    GroundingMetadata,
    PydanticAIProvider,
)
from interview_prep.llm.retry import (
    ErrorCategory,
    GiveUp,
    RetryPolicy,
    RetrySameModel,
    RetryState,
    SwitchModel,
    categorize_error,
    next_action,
)
from interview_prep.llm.sources import dedupe_sources, extract_sources, sources_from_grounding
from interview_prep.llm.streaming import aggregate_stream, generate_with_smart_retry

__all__ = [
    # Provider
    "GenerationChunk",
    "GenerationOptions",
    "GenerationResponse",
    "GenerativeProvider",
    "GroundingChunk",
    "GroundingMetadata",
    "PydanticAIProvider",
    # Retry
    "ErrorCategory",
    "GiveUp",
    "RetryPolicy",
    "RetrySameModel",
    "RetryState",
    "SwitchModel",
    "categorize_error",
    "next_action",
    # Sources
    "dedupe_sources",
    "extract_sources",
    "sources_from_grounding",
    # Streaming
    "aggregate_stream",
    "generate_with_smart_retry",
]
