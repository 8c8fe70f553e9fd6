"""Uniform response envelope returned by providers and the orchestrator."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Fixed error taxonomy surfaced to callers."""

    INVALID_REQUEST = "INVALID_REQUEST"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    NETWORK = "NETWORK"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class AIError:
    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ResponseMetadata:
    """Provenance and cost information attached to every response."""

    provider: str
    model: str
    latency_ms: int
    tokens_used: int | None = None
    cache_hit: bool = False
    policy_fallback: bool = False


@dataclass(frozen=True)
class AIResponse:
    """Either usable ``data`` or a classified ``error``, never both."""

    success: bool
    metadata: ResponseMetadata
    data: Any = None
    error: AIError | None = None

    def __post_init__(self) -> None:
        if self.success and self.error is not None:
            raise ValueError("A successful response cannot carry an error")
        if not self.success and (self.error is None or self.data is not None):
            raise ValueError("A failed response must carry an error and no data")

    @classmethod
    def ok(cls, data: Any, metadata: ResponseMetadata) -> "AIResponse":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        metadata: ResponseMetadata,
        details: dict[str, Any] | None = None,
    ) -> "AIResponse":
        return cls(
            success=False,
            error=AIError(code=code, message=message, details=details),
            metadata=metadata,
        )

    def with_metadata(self, **changes: Any) -> "AIResponse":
        """Return a copy with some metadata fields replaced."""
        return replace(self, metadata=replace(self.metadata, **changes))

    @property
    def text(self) -> str | None:
        """Raw model text, for provider responses that carry it."""
        if isinstance(self.data, dict):
            text = self.data.get("text")
            return text if isinstance(text, str) else None
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire format used by HTTP callers."""
        body: dict[str, Any] = {
            "success": self.success,
            "metadata": {
                "provider": self.metadata.provider,
                "model": self.metadata.model,
                "tokensUsed": self.metadata.tokens_used,
                "latencyMs": self.metadata.latency_ms,
                "cacheHit": self.metadata.cache_hit,
                "policyFallback": self.metadata.policy_fallback,
            },
        }
        if self.success:
            body["data"] = self.data
        if self.error is not None:
            body["error"] = {
                "code": self.error.code.value,
                "message": self.error.message,
                "details": self.error.details,
            }
        return body
