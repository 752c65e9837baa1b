"""Scripted generation provider used across the test suite."""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Iterable

from interview_prep.llm.provider import (
    GenerationChunk,
    GenerationOptions,
    GenerationResponse,
    GroundingChunk,
    GroundingMetadata,
)


@dataclass
class StreamScript:
    """How one provider call behaves."""

    chunks: list[GenerationChunk] = field(default_factory=list)
    error: BaseException | None = None
    connect_delay: float = 0.0
    chunk_delay: float = 0.0
    fail_after: BaseException | None = None


Reply = str | GenerationResponse | StreamScript | BaseException
Responder = Callable[[str, str, GenerationOptions], Reply]


@dataclass
class Call:
    method: str
    model: str
    prompt: str
    options: GenerationOptions


def grounding(*pairs: tuple[str, str]) -> GroundingMetadata:
    return GroundingMetadata(chunks=[GroundingChunk(title=title, uri=uri) for title, uri in pairs])


def _as_script(reply: Reply) -> StreamScript:
    if isinstance(reply, StreamScript):
        return reply
    if isinstance(reply, BaseException):
        return StreamScript(error=reply)
    if isinstance(reply, GenerationResponse):
        chunks = [GenerationChunk(text=reply.text)]
        if reply.grounding is not None:
            chunks.append(GenerationChunk(grounding=reply.grounding))
        return StreamScript(chunks=chunks)
    return StreamScript(chunks=[GenerationChunk(text=reply)])


class FakeProvider:
    """``GenerativeProvider`` answering from a responder function or a queue of replies."""

    def __init__(self, responder: Responder | None = None, replies: Iterable[Reply] = ()) -> None:
        self._responder = responder
        self._replies: deque[Reply] = deque(replies)
        self.calls: list[Call] = []

    def _reply(self, method: str, model: str, prompt: str, options: GenerationOptions) -> StreamScript:
        self.calls.append(Call(method, model, prompt, options))
        if self._responder is not None:
            return _as_script(self._responder(model, prompt, options))
        return _as_script(self._replies.popleft())

    def models(self) -> list[str]:
        return [call.model for call in self.calls]

    async def generate_once(self, model: str, prompt: str, options: GenerationOptions) -> GenerationResponse:
        script = self._reply("once", model, prompt, options)
        await asyncio.sleep(script.connect_delay)
        if script.error is not None:
            raise script.error
        if script.fail_after is not None:
            raise script.fail_after
        latest = [c.grounding for c in script.chunks if c.grounding is not None and c.grounding.chunks]
        return GenerationResponse(
            text="".join(c.text for c in script.chunks), grounding=latest[-1] if latest else None
        )

    async def generate_stream(
        self, model: str, prompt: str, options: GenerationOptions
    ) -> AsyncIterator[GenerationChunk]:
        script = self._reply("stream", model, prompt, options)
        await asyncio.sleep(script.connect_delay)
        if script.error is not None:
            raise script.error
        return self._iterate(script)

    async def _iterate(self, script: StreamScript) -> AsyncIterator[GenerationChunk]:
        for chunk in script.chunks:
            await asyncio.sleep(script.chunk_delay)
            yield chunk
        if script.fail_after is not None:
            raise script.fail_after


def route(table: dict[str, Reply], default: Reply = "") -> Responder:
    """Responder picking the reply whose key occurs in the prompt (first match wins)."""

    def _respond(model: str, prompt: str, options: GenerationOptions) -> Reply:
        for needle, reply in table.items():
            if needle in prompt:
                return reply
        return default

    return _respond


