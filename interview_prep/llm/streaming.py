"""Streamed generation with dual deadlines and retry/fallback."""

import asyncio
from dataclasses import replace
from time import perf_counter
from typing import AsyncIterator

from interview_prep.exceptions import StageTimeoutError, StreamTimeoutError
from interview_prep.llm.provider import (
    GenerationChunk,
    GenerationOptions,
    GenerationResponse,
    GenerativeProvider,
    GroundingMetadata,
)
from interview_prep.llm.retry import (
    GiveUp,
    RetryPolicy,
    RetrySameModel,
    RetryState,
    SwitchModel,
    categorize_error,
    next_action,
)
from interview_prep.logging import get_logger
from interview_prep.timeouts import call_with_timeout

log = get_logger("interview_prep.llm.streaming")


async def _next_chunk(iterator: AsyncIterator[GenerationChunk]) -> GenerationChunk | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def aggregate_stream(
    provider: GenerativeProvider,
    model: str,
    prompt: str,
    options: GenerationOptions,
    *,
    connect_timeout: float,
    inactivity_timeout: float,
    task_label: str,
) -> GenerationResponse:
    """Run one streamed attempt and fold its chunks into a single response.

    ``connect_timeout`` bounds opening the stream. ``inactivity_timeout``
    bounds the gap before each chunk, measured from the previous chunk, so a
    model that never answers and a model that stalls mid-answer are told apart
    by the ``phase`` of the resulting ``StreamTimeoutError``.
    """
    try:
        stream = await call_with_timeout(
            provider.generate_stream(model, prompt, options),
            connect_timeout,
            f"{task_label}: no stream from {model} within {connect_timeout}s",
        )
    except StreamTimeoutError:
        raise
    except StageTimeoutError as e:
        raise StreamTimeoutError(e.message, phase="connect") from e

    iterator = stream.__aiter__()
    parts: list[str] = []
    grounding: GroundingMetadata | None = None
    while True:
        try:
            chunk = await call_with_timeout(
                _next_chunk(iterator),
                inactivity_timeout,
                f"{task_label}: {model} stalled for {inactivity_timeout}s",
            )
        except StreamTimeoutError:
            raise
        except StageTimeoutError as e:
            raise StreamTimeoutError(e.message, phase="inactivity") from e
        if chunk is None:
            break
        if chunk.text:
            parts.append(chunk.text)
        # Citation lists arrive cumulative, so the latest one supersedes earlier ones.
        if chunk.grounding is not None and chunk.grounding.chunks:
            grounding = chunk.grounding

    return GenerationResponse(text="".join(parts), grounding=grounding)


async def generate_with_smart_retry(
    provider: GenerativeProvider,
    model: str,
    prompt: str,
    options: GenerationOptions | None = None,
    stream_timeout: float | None = None,
    task_label: str = "generation",
    policy: RetryPolicy | None = None,
) -> GenerationResponse:
    """Stream a generation, retrying once on the same model and once on the fallback model.

    Args:
        provider: Generation backend.
        model: Fully qualified model name for the first attempt.
        prompt: Prompt text.
        options: Grounding / JSON options passed through to the provider.
        stream_timeout: Connection deadline in seconds (defaults to the policy's).
        task_label: Name used in attempt logs.
        policy: Fallback model, backoff and deadlines.

    Raises:
        The last attempt's exception when every allowed attempt failed, or the
        first exception if it is not recoverable.
    """
    policy = policy or RetryPolicy()
    options = options or GenerationOptions()
    state = RetryState(attempt=1, model=model, original_model=model, fallback_model=policy.fallback_model)

    while True:
        started = perf_counter()
        try:
            response = await aggregate_stream(
                provider,
                state.model,
                prompt,
                options,
                connect_timeout=stream_timeout or policy.stream_timeout,
                inactivity_timeout=policy.inactivity_timeout,
                task_label=task_label,
            )
        except Exception as e:
            elapsed_ms = int((perf_counter() - started) * 1000)
            category = categorize_error(e)
            action = next_action(state, category, policy.retry_delay)
            log.warning(
                "retry.attempt.failed",
                task=task_label,
                model=state.model,
                attempt=state.attempt,
                elapsed_ms=elapsed_ms,
                category=category.value,
                error=str(e),
                next_action=type(action).__name__,
            )
            if isinstance(action, GiveUp):
                raise
            if isinstance(action, RetrySameModel):
                await asyncio.sleep(action.delay)
                state = replace(state, attempt=state.attempt + 1)
            elif isinstance(action, SwitchModel):
                state = replace(state, attempt=state.attempt + 1, model=action.model)
            continue

        log.info(
            "retry.attempt.succeeded",
            task=task_label,
            model=state.model,
            attempt=state.attempt,
            elapsed_ms=int((perf_counter() - started) * 1000),
            chars=len(response.text),
        )
        return response
