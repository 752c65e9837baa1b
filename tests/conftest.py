"""Shared fixtures: zero-delay settings and stage contexts over a fake provider."""

from typing import Callable

import pytest

from interview_prep.config import Settings
from interview_prep.stages.base import StageContext
from tests.fakes import FakeProvider


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_key="test-key",
        api_enabled=True,
        retry_delay=0,
        professor_analysis_delay=0,
        stream_timeout=2,
        stream_inactivity_timeout=1,
        default_timeout=2,
    )


@pytest.fixture
def make_context(settings: Settings) -> Callable[[FakeProvider], StageContext]:
    def _make(provider: FakeProvider) -> StageContext:
        return StageContext(provider=provider, settings=settings)

    return _make
