"""Tests for the Gemini and mock model providers."""

import json

import httpx
import pytest

from vibetrip.app.exceptions import ConfigurationError, RemoteModelError, TransientRemoteError
from vibetrip.app.providers.gemini import GeminiProvider, build_request_body, extract_text
from vibetrip.app.providers.mock import MockProvider
from vibetrip.app.services.pipeline import agents
from vibetrip.app.services.pipeline.models import DiscoveryResult, TripIntent

BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GENERATE_URL = f"{BASE_URL}/models/gemini-2.5-flash:generateContent"


def _candidate(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestRequestBody:
    def test_string_contents_become_user_turn(self):
        body = build_request_body("Hello", None)

        assert body == {"contents": [{"role": "user", "parts": [{"text": "Hello"}]}]}

    def test_config_split_between_top_level_and_generation_config(self):
        body = build_request_body(
            "Hi",
            {
                "systemInstruction": "Be brief",
                "temperature": 0.3,
                "responseMimeType": "application/json",
            },
        )

        assert body["systemInstruction"] == {"parts": [{"text": "Be brief"}]}
        assert body["generationConfig"] == {
            "temperature": 0.3,
            "responseMimeType": "application/json",
        }

    def test_extract_text_joins_parts(self):
        data = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}

        assert extract_text(data) == "ab"

    def test_extract_text_without_candidates(self):
        with pytest.raises(RemoteModelError) as exc_info:
            extract_text({"promptFeedback": {"blockReason": "SAFETY"}})

        assert "SAFETY" in exc_info.value.message


class TestGeminiProvider:
    @pytest.fixture
    def provider(self):
        return GeminiProvider(base_url=BASE_URL, api_key="test-key")

    @pytest.mark.asyncio
    async def test_generate_success(self, provider, respx_mock):
        route = respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(200, json=_candidate("Bonjour"))
        )

        assert await provider.generate("gemini-2.5-flash", "Hello") == "Bonjour"
        request = route.calls.last.request
        assert request.headers["x-goog-api-key"] == "test-key"
        assert json.loads(request.content)["contents"][0]["parts"][0]["text"] == "Hello"

    @pytest.mark.asyncio
    async def test_remote_error_keeps_status_and_message(self, provider, respx_mock):
        respx_mock.post(GENERATE_URL).mock(
            return_value=httpx.Response(
                429, json={"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
            )
        )

        with pytest.raises(RemoteModelError) as exc_info:
            await provider.generate("gemini-2.5-flash", "Hello")

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Quota exceeded"
        assert exc_info.value.is_transient is True

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, provider, respx_mock):
        respx_mock.post(GENERATE_URL).mock(return_value=httpx.Response(500, text="oops"))

        with pytest.raises(RemoteModelError) as exc_info:
            await provider.generate("gemini-2.5-flash", "Hello")

        assert exc_info.value.message == "Gemini API error (500)"

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, provider, respx_mock):
        respx_mock.post(GENERATE_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransientRemoteError):
            await provider.generate("gemini-2.5-flash", "Hello")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        provider = GeminiProvider(base_url=BASE_URL, api_key="")

        with pytest.raises(ConfigurationError) as exc_info:
            await provider.generate("gemini-2.5-flash", "Hello")

        assert exc_info.value.message == "GEMINI_API_KEY is not set"
        assert provider.configured is False

    @pytest.mark.asyncio
    async def test_uses_attached_client(self, respx_mock):
        respx_mock.post(GENERATE_URL).mock(return_value=httpx.Response(200, json=_candidate("ok")))
        provider = GeminiProvider(base_url=BASE_URL, api_key="test-key")

        async with httpx.AsyncClient() as shared:
            provider.attach_http_client(shared)
            assert provider.http_client is shared
            assert await provider.generate("gemini-2.5-flash", "Hi") == "ok"

    @pytest.mark.asyncio
    async def test_health_check(self, provider, respx_mock):
        respx_mock.get(f"{BASE_URL}/models").mock(return_value=httpx.Response(200, json={}))

        assert await provider.health_check() is True


class TestMockProvider:
    @pytest.fixture
    def provider(self):
        return MockProvider(min_delay=0, max_delay=0)

    @pytest.mark.asyncio
    async def test_plain_text_response(self, provider):
        text = await provider.generate("gemini-2.0-flash", "Hello there")

        assert text == "Mock response from gemini-2.0-flash: Hello there"

    @pytest.mark.asyncio
    async def test_intent_response_parses(self, provider):
        request = agents.build_intent_request("Take me to Tokyo for 4 days", "m", None)

        text = await provider.generate(request.model, request.contents, request.config)
        intent = TripIntent.model_validate(json.loads(text))

        assert intent.destination == "Tokyo"
        assert intent.duration_days == 4
        assert intent.confidence_score == 0.95
        assert intent.primary_currency.code == "JPY"

    @pytest.mark.asyncio
    async def test_vague_intent_has_assumptions(self, provider):
        request = agents.build_intent_request("something relaxing", "m", None)

        text = await provider.generate(request.model, request.contents, request.config)
        intent = TripIntent.model_validate(json.loads(text))

        assert intent.destination == "Lisbon"
        assert intent.confidence_score == 0.5
        assert len(intent.assumptions) == 2

    @pytest.mark.asyncio
    async def test_discovery_response_parses(self, provider):
        intent = TripIntent.model_validate({
            "destination": "Paris",
            "budgetLevel": "Luxury",
            "confidenceScore": 0.9,
        })
        request = agents.build_discovery_request(intent, "m")

        text = await provider.generate(request.model, request.contents, request.config)
        discovery = DiscoveryResult.model_validate(json.loads(text))

        assert len(discovery.activities) == 4
        assert discovery.activities[0].name.startswith("Paris")

    @pytest.mark.asyncio
    async def test_simulated_failures(self):
        provider = MockProvider(min_delay=0, max_delay=0, failure_rate=1.0)

        with pytest.raises(TransientRemoteError):
            await provider.generate("m", "Hello")
