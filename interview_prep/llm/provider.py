"""Generative provider boundary.

The pipeline depends on exactly two primitives, a single-shot call and a
streamed call, plus a flag that turns on web grounding. Adapters normalise
whatever their SDK returns into ``GenerationChunk`` / ``GenerationResponse``
so nothing downstream inspects provider-specific shapes.
"""

import json
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, Callable, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field
from pydantic_ai import Agent, WebSearchTool
from pydantic_ai.capabilities import NativeTool
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import ModelMessage, ModelResponse, NativeToolReturnPart
from pydantic_ai.models import Model

from interview_prep.exceptions import ProviderError
from interview_prep.logging import get_logger

log = get_logger("interview_prep.llm.provider")


class GroundingChunk(BaseModel):
    title: str | None = None
    uri: str | None = None


class GroundingMetadata(BaseModel):
    """Citations attached to a grounded response, in provider order."""

    chunks: list[GroundingChunk] = Field(default_factory=list)


class GenerationChunk(BaseModel):
    text: str = ""
    grounding: GroundingMetadata | None = None


class GenerationResponse(BaseModel):
    text: str = ""
    grounding: GroundingMetadata | None = None


class GenerationOptions(BaseModel):
    grounded: bool = Field(default=False, description="Enable the provider's web search tool")
    json_output: bool = Field(default=False, description="Ask for a raw JSON object as the answer")
    system_instruction: str | None = None
    response_schema: dict[str, Any] | None = None


@runtime_checkable
class GenerativeProvider(Protocol):
    async def generate_once(self, model: str, prompt: str, options: GenerationOptions) -> GenerationResponse: ...

    async def generate_stream(
        self, model: str, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[GenerationChunk]:
        """Open a stream. Awaiting this establishes the connection; iterating yields chunks."""
        ...


# --- pydantic-ai adapter ---


def _citations_from_content(content: Any) -> list[GroundingChunk]:
    """Pull ``{title, uri}`` pairs out of a web-search tool return, whatever its nesting."""
    if isinstance(content, list):
        return [chunk for item in content for chunk in _citations_from_content(item)]
    if not isinstance(content, dict):
        return []

    web = content.get("web")
    if isinstance(web, dict):
        return _citations_from_content(web)

    uri = content.get("uri") or content.get("url")
    if isinstance(uri, str):
        title = content.get("title")
        return [GroundingChunk(title=title if isinstance(title, str) else None, uri=uri)]

    nested: list[GroundingChunk] = []
    for key in ("grounding_chunks", "groundingChunks", "results", "sources"):
        nested.extend(_citations_from_content(content.get(key)))
    return nested


def grounding_from_messages(messages: list[ModelMessage]) -> GroundingMetadata | None:
    chunks: list[GroundingChunk] = []
    for message in messages:
        if not isinstance(message, ModelResponse):
            continue
        for part in message.parts:
            if isinstance(part, NativeToolReturnPart):
                chunks.extend(_citations_from_content(part.content))
    return GroundingMetadata(chunks=chunks) if chunks else None


def _build_instructions(options: GenerationOptions) -> str | None:
    sections = [options.system_instruction] if options.system_instruction else []
    if options.json_output:
        sections.append("Respond with a single raw JSON object. Do not wrap it in Markdown.")
    if options.response_schema:
        sections.append("The JSON object must follow this JSON Schema:\n" + json.dumps(options.response_schema))
    return "\n\n".join(sections) or None


class PydanticAIProvider:
    """``GenerativeProvider`` backed by pydantic-ai agents.

    Args:
        model_resolver: Maps a model name to what ``Agent.run`` accepts. Tests
            pass a resolver returning ``TestModel``/``FunctionModel`` instances.
    """

    def __init__(self, model_resolver: Callable[[str], Model | str] | None = None) -> None:
        self._resolve = model_resolver or (lambda name: name)

    def _agent(self, options: GenerationOptions) -> Agent[None, str]:
        return Agent(
            None,
            instructions=_build_instructions(options),
            capabilities=[NativeTool(WebSearchTool())] if options.grounded else [],
            output_type=str,
            name="interview_prep_agent",
        )

    async def generate_once(self, model: str, prompt: str, options: GenerationOptions) -> GenerationResponse:
        agent = self._agent(options)
        try:
            result = await agent.run(prompt, model=self._resolve(model))
        except ModelHTTPError as e:
            raise ProviderError(e.status_code, str(e)) from e
        return GenerationResponse(text=result.output, grounding=grounding_from_messages(result.all_messages()))

    async def generate_stream(
        self, model: str, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[GenerationChunk]:
        agent = self._agent(options)
        stack = AsyncExitStack()
        try:
            streamed = await stack.enter_async_context(agent.run_stream(prompt, model=self._resolve(model)))
        except ModelHTTPError as e:
            await stack.aclose()
            raise ProviderError(e.status_code, str(e)) from e
        except BaseException:
            await stack.aclose()
            raise
        return self._iter_chunks(streamed, stack)

    async def _iter_chunks(self, streamed: Any, stack: AsyncExitStack) -> AsyncIterator[GenerationChunk]:
        async with stack:
            try:
                async for delta in streamed.stream_text(delta=True):
                    yield GenerationChunk(text=delta)
            except ModelHTTPError as e:
                raise ProviderError(e.status_code, str(e)) from e
            except httpx.HTTPStatusError as e:
                raise ProviderError(e.response.status_code, str(e)) from e
            grounding = grounding_from_messages(streamed.all_messages())
            if grounding is not None:
                yield GenerationChunk(grounding=grounding)
