"""Citation extraction from grounded responses."""

from typing import Iterable

from interview_prep.llm.provider import GenerationResponse, GroundingMetadata
from interview_prep.models import Source


def dedupe_sources(sources: Iterable[Source]) -> list[Source]:
    """Drop repeated URIs, keeping the first occurrence and the original order."""
    seen: set[str] = set()
    unique: list[Source] = []
    for source in sources:
        if source.uri in seen:
            continue
        seen.add(source.uri)
        unique.append(source)
    return unique


def sources_from_grounding(grounding: GroundingMetadata | None) -> list[Source]:
    if grounding is None:
        return []
    return dedupe_sources(
        Source(title=chunk.title, uri=chunk.uri) for chunk in grounding.chunks if chunk.title and chunk.uri
    )


def extract_sources(response: GenerationResponse) -> tuple[str, list[Source]]:
    """Return the response text and its de-duplicated citations."""
    return response.text or "", sources_from_grounding(response.grounding)
