"""Model provider protocol.

Each implementation owns its wire format: it builds the native request from
an ``AIRequest``, maps HTTP and transport failures onto ``ErrorCode`` and
measures latency from call start to response parse completion.
"""

from typing import Protocol, runtime_checkable

from ai_orchestrator.entities import AIRequest, AIResponse, ProviderName


@runtime_checkable
class AIProvider(Protocol):
    """Protocol for text/vision completion providers.

    On success ``data`` is ``{"text": <model text>}``. Failures are returned
    as envelopes, never raised.
    """

    @property
    def name(self) -> ProviderName:
        """Registry name of the provider."""
        ...

    @property
    def model(self) -> str:
        """Model identifier sent to the provider."""
        ...

    @property
    def supports_vision(self) -> bool:
        """Whether image-bearing requests may be routed here."""
        ...

    async def call(self, request: AIRequest) -> AIResponse:
        """Send one completion request.

        Args:
            request: The uniform request

        Returns:
            A success envelope with the model text, or a classified failure
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
