"""Google Gemini provider.

Calls the Generative Language ``generateContent`` endpoint. Images travel
as ``inline_data`` parts next to the prompt text.

Requirements:
    - GEMINI_API_KEY set in the environment (or passed explicitly)
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


class GeminiProvider:
    """Gemini implementation of the AIProvider protocol.

    This class satisfies the AIProvider protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        provider = GeminiProvider.create(api_key="...")
        response = await provider.call(AIRequest(prompt="Describe this", image=image))
        ```
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the Gemini provider.

        Args:
            api_key: Generative Language API key.
            model: Model id. Defaults to settings.gemini_model.
            base_url: Models endpoint root. Defaults to settings.gemini_base_url.
            client: Optional pre-built HTTP client (tests inject a mock transport).
            timeout: Transport-level timeout in seconds. The orchestrator's
                per-request deadline is normally shorter.
        """
        self._api_key = api_key
        self._model = model or settings.gemini_model
        self._base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self._timeout = timeout
        self._client = client

    @classmethod
    def create(
        cls,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> "GeminiProvider":
        """Factory method to create GeminiProvider from settings.

        Raises:
            ValueError: If no API key is configured
        """
        key = api_key or settings.gemini_api_key
        if not key:
            raise ValueError("GEMINI_API_KEY is not configured")
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
        return ProviderName.GEMINI

    @property
    def model(self) -> str:
        return self._model

    @property
    def supports_vision(self) -> bool:
        return True

    def _build_body(self, request: AIRequest) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": request.prompt}]
        if request.image is not None:
            parts.append(
                {
                    "inline_data": {
                        "mime_type": request.image.mime_type,
                        "data": strip_data_uri(request.image.base64),
                    }
                }
            )
        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
                "maxOutputTokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            },
        }

    @staticmethod
    def _extract_text(payload: Any) -> str | None:
        try:
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) and text else None

    async def call(self, request: AIRequest) -> AIResponse:
        """Call ``{base_url}/{model}:generateContent``."""
        started = time.perf_counter()
        provider = self.name.value
        url = f"{self._base_url}/{self._model}:generateContent"

        try:
            response = await self.client.post(
                url,
                json=self._build_body(request),
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.TimeoutException as e:
            logger.warning("Gemini request timed out", extra={"error": str(e)})
            return failure(provider, self._model, started, ErrorCode.TIMEOUT, "Gemini request timed out")
        except httpx.HTTPError as e:
            logger.warning("Gemini network error", extra={"error": str(e)})
            return failure(provider, self._model, started, ErrorCode.NETWORK, "Network error contacting Gemini")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            logger.error(
                "Gemini API error",
                extra={"status": response.status_code, "body": response.text},
            )
            return failure(
                provider,
                self._model,
                started,
                classify_status(response.status_code),
                status_message("Gemini", response.status_code),
                status=response.status_code,
            )

        text = self._extract_text(payload)
        if text is None:
            logger.error("Unexpected response format from Gemini", extra={"body": response.text})
            return failure(
                provider,
                self._model,
                started,
                ErrorCode.PROVIDER_ERROR,
                "Unexpected response format from Gemini",
                status=response.status_code,
            )

        tokens = (payload.get("usageMetadata") or {}).get("totalTokenCount")
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
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
