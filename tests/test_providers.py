"""Tests for the provider adapters using httpx.MockTransport."""

import json
from dataclasses import replace

import httpx
import pytest

from ai_orchestrator.entities import AIRequest, ErrorCode, ImageData, ProviderName
from ai_orchestrator.repositories import GeminiProvider, OpenAICompatibleProvider
from ai_orchestrator.repositories import gemini_provider
from ai_orchestrator.repositories.provider_support import classify_status

IMAGE = ImageData(base64="data:image/jpeg;base64,QUJD", mime_type="image/jpeg")


def gemini(handler) -> GeminiProvider:
    return GeminiProvider(
        api_key="test-gemini-key",
        model="gemini-2.0-flash-exp",
        base_url="https://gemini.test/v1beta/models",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def gateway(handler) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        api_key="test-gateway-key",
        model="google/gemini-2.5-flash",
        base_url="https://gateway.test/v1",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def gemini_success(text: str = '{"ok": true}', tokens: int = 42) -> dict:
    return {
        "candidates": [{"content": {"parts": [{"text": text}]}}],
        "usageMetadata": {"totalTokenCount": tokens},
    }


@pytest.mark.parametrize(
    "status,code",
    [
        (401, ErrorCode.AUTHENTICATION),
        (403, ErrorCode.AUTHENTICATION),
        (429, ErrorCode.RATE_LIMIT),
        (408, ErrorCode.TIMEOUT),
        (400, ErrorCode.PROVIDER_ERROR),
        (500, ErrorCode.PROVIDER_ERROR),
        (503, ErrorCode.PROVIDER_ERROR),
    ],
)
def test_classify_status(status, code):
    assert classify_status(status) is code


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_success())

        provider = gemini(handler)
        response = await provider.call(AIRequest(prompt="Describe", image=IMAGE))
        await provider.close()

        assert response.success is True
        assert response.text == '{"ok": true}'
        assert response.metadata.tokens_used == 42
        assert response.metadata.provider == ProviderName.GEMINI.value
        assert response.metadata.latency_ms >= 0
        assert seen["url"] == "https://gemini.test/v1beta/models/gemini-2.0-flash-exp:generateContent"
        assert seen["key"] == "test-gemini-key"
        parts = seen["body"]["contents"][0]["parts"]
        assert parts[0] == {"text": "Describe"}
        assert parts[1] == {"inline_data": {"mime_type": "image/jpeg", "data": "QUJD"}}

    @pytest.mark.asyncio
    async def test_generation_defaults_and_overrides(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=gemini_success())

        provider = gemini(handler)
        await provider.call(AIRequest(prompt="a"))
        await provider.call(AIRequest(prompt="b", temperature=0.0, max_tokens=256))

        assert bodies[0]["generationConfig"] == {"temperature": 0.7, "maxOutputTokens": 4096}
        assert bodies[1]["generationConfig"] == {"temperature": 0.0, "maxOutputTokens": 256}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,code", [(401, ErrorCode.AUTHENTICATION), (429, ErrorCode.RATE_LIMIT), (500, ErrorCode.PROVIDER_ERROR)])
    async def test_http_errors_are_classified_without_leaking_body(self, status, code):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": {"message": "internal quota project 1234 exhausted"}})

        response = await gemini(handler).call(AIRequest(prompt="a"))

        assert response.success is False
        assert response.error.code is code
        assert response.error.details == {"status": status}
        assert "1234" not in response.error.message

    @pytest.mark.asyncio
    async def test_missing_text_is_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        response = await gemini(handler).call(AIRequest(prompt="a"))

        assert response.error.code is ErrorCode.PROVIDER_ERROR

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        response = await gemini(handler).call(AIRequest(prompt="a"))

        assert response.error.code is ErrorCode.NETWORK

    @pytest.mark.asyncio
    async def test_client_timeout_is_timeout_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        response = await gemini(handler).call(AIRequest(prompt="a"))

        assert response.error.code is ErrorCode.TIMEOUT

    def test_create_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(gemini_provider, "settings", replace(gemini_provider.settings, gemini_api_key=None))
        with pytest.raises(ValueError):
            GeminiProvider.create(api_key=None)


class TestOpenAICompatibleProvider:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": "hello"}}], "usage": {"total_tokens": 17}},
            )

        provider = gateway(handler)
        response = await provider.call(AIRequest(prompt="Describe", image=IMAGE))
        await provider.close()

        assert response.success is True
        assert response.text == "hello"
        assert response.metadata.tokens_used == 17
        assert response.metadata.provider == ProviderName.OPENAI_COMPATIBLE.value
        assert seen["url"] == "https://gateway.test/v1/chat/completions"
        assert seen["auth"] == "Bearer test-gateway-key"
        body = seen["body"]
        assert body["model"] == "google/gemini-2.5-flash"
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 4096
        content = body["messages"][-1]["content"]
        assert content[0] == {"type": "text", "text": "Describe"}
        assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,QUJD"}}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,code", [(403, ErrorCode.AUTHENTICATION), (408, ErrorCode.TIMEOUT), (502, ErrorCode.PROVIDER_ERROR)])
    async def test_http_errors_are_classified(self, status, code):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text="upstream said no")

        response = await gateway(handler).call(AIRequest(prompt="a"))

        assert response.error.code is code
        assert response.error.details == {"status": status}

    @pytest.mark.asyncio
    async def test_empty_choices_is_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        response = await gateway(handler).call(AIRequest(prompt="a"))

        assert response.error.code is ErrorCode.PROVIDER_ERROR
