"""Tests for FastAPI server."""

import json
import logging

import httpx
import pytest
import structlog
from fastapi import FastAPI

from interview_prep.config import Settings
from interview_prep.logging import configure_structlog
from interview_prep.rate_limiter import KeyedRateLimiter
from interview_prep.server import get_app
from tests.fakes import FakeProvider, route

PAYLOAD = {"uni": "한국대학교", "dept": "컴퓨터공학과"}


def _client(app: FastAPI, raise_app_exceptions: bool = True) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions), base_url="http://test"
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(
        responder=route(
            {
                "university validation assistant": '{"isValid": true, "isTypo": true, "correctedUniversity": "한국대학교"}',
                "interview strategist": json.dumps({"coreStrategy": "기본기", "coreConcepts": []}),
                "Generate 9 anticipated interview questions": json.dumps({"high": [{"question": "Q"}]}),
            }
        )
    )


@pytest.fixture
def app(settings: Settings, provider: FakeProvider) -> FastAPI:
    return get_app(settings=settings, provider=provider)


class TestStageEndpoint:
    """Tests for /api/gemini."""

    @pytest.mark.asyncio
    async def test__validate__returns_camel_case_result(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "validate", "payload": PAYLOAD})

        assert response.status_code == 200
        assert response.json() == {
            "isValid": True,
            "isTypo": True,
            "correctedUniversity": "한국대학교",
            "correctedDepartment": None,
            "message": None,
        }

    @pytest.mark.asyncio
    async def test__synthesis__returns_full_plan(self, app: FastAPI) -> None:
        payload = {**PAYLOAD, "curriculum": "c", "trends": "t", "professors": [{"name": "Kim", "researchTendency": "AI"}]}
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "synthesis", "payload": payload})

        assert response.status_code == 200
        data = response.json()
        assert data["coreStrategy"] == "기본기"
        assert data["questions"]["high"][0]["question"] == "Q"
        assert data["questions"]["low"] == []

    @pytest.mark.asyncio
    async def test__unknown_action__returns_400(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "summarize", "payload": PAYLOAD})

        assert response.status_code == 400
        assert response.json() == {"error": "InvalidAction", "detail": "Invalid action"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b'{"payload": {}}',
            b'{"action": "validate", "payload": {"config": {"timeout": -1}}}',
            b'{"action": "synthesis", "payload": {"subTask": "everything"}}',
        ],
    )
    async def test__malformed_body__returns_400(self, app: FastAPI, body: bytes) -> None:
        async with _client(app) as client:
            response = await client.post("/api/gemini", content=body, headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidPayload"

    @pytest.mark.asyncio
    async def test__disabled_service__returns_503(self, settings: Settings, provider: FakeProvider) -> None:
        app = get_app(settings=settings.model_copy(update={"api_enabled": False}), provider=provider)
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "validate", "payload": PAYLOAD})

        assert response.status_code == 503
        assert response.json() == {"error": "ServiceDisabledError", "detail": "Server is currently closed by admin."}
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test__missing_api_key__returns_500(self, settings: Settings, provider: FakeProvider) -> None:
        app = get_app(settings=settings.model_copy(update={"api_key": ""}), provider=provider)
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "validate", "payload": PAYLOAD})

        assert response.status_code == 500
        assert response.json()["error"] == "ConfigurationError"

    @pytest.mark.asyncio
    async def test__rate_limit__returns_429_with_retry_after(self, settings: Settings, provider: FakeProvider) -> None:
        app = get_app(settings=settings, provider=provider, rate_limiter=KeyedRateLimiter(max_requests=1, window=60))
        async with _client(app) as client:
            first = await client.post("/api/gemini", json={"action": "validate", "payload": PAYLOAD})
            second = await client.post("/api/gemini", json={"action": "validate", "payload": PAYLOAD})
            other = await client.post(
                "/api/gemini",
                json={"action": "validate", "payload": PAYLOAD},
                headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
            )

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.json()["error"] == "RateLimitExceededError"
        assert 1 <= second.json()["retryAfter"] <= 60
        assert second.headers["Retry-After"] == str(second.json()["retryAfter"])
        assert other.status_code == 200

    @pytest.mark.asyncio
    async def test__synthesis_failure__returns_safe_500(self, settings: Settings) -> None:
        failing = FakeProvider(responder=lambda model, prompt, options: RuntimeError("model refused"))
        app = get_app(settings=settings, provider=failing)
        async with _client(app) as client:
            response = await client.post("/api/gemini", json={"action": "synthesis", "payload": PAYLOAD})

        assert response.status_code == 500
        assert response.json() == {
            "error": "SynthesisError",
            "detail": "Unable to generate interview strategy. Please try again.",
        }

    @pytest.mark.asyncio
    async def test__unexpected_error__returns_500(self, settings: Settings) -> None:
        failing = FakeProvider(responder=lambda model, prompt, options: RuntimeError("Unexpected error"))
        app = get_app(settings=settings, provider=failing)
        async with _client(app, raise_app_exceptions=False) as client:
            response = await client.post("/api/gemini", json={"action": "curriculum", "payload": PAYLOAD})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "InternalServerError"
        assert "Unexpected" not in data["detail"]

    @pytest.mark.asyncio
    async def test__options__returns_empty_200(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.options("/api/gemini")

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.asyncio
    async def test__cors_preflight__is_answered(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.options(
                "/api/gemini",
                headers={"Origin": "https://prep.example", "Access-Control-Request-Method": "POST"},
            )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test__health__returns_ok(self, app: FastAPI) -> None:
        async with _client(app) as client:
            response = await client.get("/health")
            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "ok"
            assert data["version"] == "0.1.0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path,expected", [("/health/liveness", "alive"), ("/health/readiness", "ready")])
    async def test__liveness_and_readiness__report_status(self, app: FastAPI, path: str, expected: str) -> None:
        async with _client(app) as client:
            response = await client.get(path)
            assert response.status_code == 200
            assert response.json()["status"] == expected


class TestAppFactory:
    """Tests for app factory function."""

    def test__get_app__has_stage_and_health_routes(self, app: FastAPI) -> None:
        routes = [route.path for route in app.routes]
        assert "/api/gemini" in routes
        assert "/health" in routes
        assert "/health/liveness" in routes
        assert "/health/readiness" in routes

    def test__get_app__keeps_collaborators_on_state(self, app: FastAPI, settings: Settings, provider: FakeProvider) -> None:
        assert app.state.settings is settings
        assert app.state.provider is provider
        assert app.state.rate_limiter.max_requests == settings.rate_limit_max_requests

    def test__get_app__configures_json_logging_at_settings_level(
        self, settings: Settings, provider: FakeProvider
    ) -> None:
        try:
            get_app(settings=settings.model_copy(update={"logging_level": "WARNING"}), provider=provider)

            assert logging.getLogger().level == logging.WARNING
            assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
        finally:
            configure_structlog()
