"""OpenAI-compatible chat-completions provider.

Works with any gateway that speaks ``POST {base_url}/chat/completions``
(hosted AI gateways, OpenRouter, vLLM, ...). Images are sent as base64
data URIs inside an ``image_url`` content part.
"""

import time
from typing import Any

import httpx

from ai_orchestrator.config import settings
from ai_orchestrator.entities import AIRequest, AIResponse, ErrorCode, ProviderName, ResponseMetadata
from ai_orchestrator.fingerprint import strip_data_uri
from ai_orchestrator.logger import get_logger
from ai_orchestrator.repositories.provider_support import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    classify_status,
    elapsed_ms,
    failure,
    status_message,
)

logger = get_logger(__name__)


class OpenAICompatibleProvider:
    """Chat-completions implementation of the AIProvider protocol.

    This class satisfies the AIProvider protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        system_prompt: str | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: Bearer token for the gateway.
            model: Model id. Defaults to settings.openai_compat_model.
            base_url: API root. Defaults to settings.openai_compat_base_url.
            client: Optional pre-built HTTP client.
            timeout: Transport-level timeout in seconds.
            system_prompt: Optional system message prepended to every call.
        """
        self._api_key = api_key
        self._model = model or settings.openai_compat_model
        self._base_url = (base_url or settings.openai_compat_base_url).rstrip("/")
        self._timeout = timeout
        self._client = client
        self._system_prompt = system_prompt

    @classmethod
    def create(
        cls,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> "OpenAICompatibleProvider":
        """Factory method to create OpenAICompatibleProvider from settings.

        Raises:
            ValueError: If no API key is configured
        """
        key = api_key or settings.openai_compat_api_key
        if not key:
            raise ValueError("OPENAI_COMPAT_API_KEY is not configured")
        return cls(api_key=key, model=model, base_url=base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def name(self) -> ProviderName:
        return ProviderName.OPENAI_COMPATIBLE

    @property
    def model(self) -> str:
        return self._model

    @property
    def supports_vision(self) -> bool:
        return True

    def _build_body(self, request: AIRequest) -> dict[str, Any]:
        content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
        if request.image is not None:
            data_uri = f"data:{request.image.mime_type};base64,{strip_data_uri(request.image.base64)}"
            content.append({"type": "image_url", "image_url": {"url": data_uri}})

        messages: list[dict[str, Any]] = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.append({"role": "user", "content": content})

        return {
            "model": self._model,
            "messages": messages,
            "temperature": DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        }

    @staticmethod
    def _extract_text(payload: Any) -> str | None:
        try:
            text = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) and text else None

    async def call(self, request: AIRequest) -> AIResponse:
        """Call ``{base_url}/chat/completions``."""
        started = time.perf_counter()
        provider = self.name.value

        try:
            response = await self.client.post(
                f"{self._base_url}/chat/completions",
                json=self._build_body(request),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.TimeoutException as e:
            logger.warning("Chat-completions request timed out", extra={"error": str(e)})
            return failure(provider, self._model, started, ErrorCode.TIMEOUT, "AI gateway request timed out")
        except httpx.HTTPError as e:
            logger.warning("Chat-completions network error", extra={"error": str(e)})
            return failure(provider, self._model, started, ErrorCode.NETWORK, "Network error contacting AI gateway")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            logger.error(
                "AI gateway error",
                extra={"status": response.status_code, "body": response.text},
            )
            return failure(
                provider,
                self._model,
                started,
                classify_status(response.status_code),
                status_message("AI gateway", response.status_code),
                status=response.status_code,
            )

        text = self._extract_text(payload)
        if text is None:
            logger.error("No text in AI gateway response", extra={"body": response.text})
            return failure(
                provider,
                self._model,
                started,
                ErrorCode.PROVIDER_ERROR,
                "No text response from AI gateway",
                status=response.status_code,
            )

        tokens = (payload.get("usage") or {}).get("total_tokens")
        return AIResponse.ok(
            data={"text": text},
            metadata=ResponseMetadata(
                provider=provider,
                model=self._model,
                latency_ms=elapsed_ms(started),
                tokens_used=tokens,
            ),
        )

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
