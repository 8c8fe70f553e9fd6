"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import Field

from ai_orchestrator.dto.requests import CamelModel


class ResponseMetadataItem(CamelModel):
    provider: str
    model: str
    tokens_used: int | None = None
    latency_ms: int
    cache_hit: bool = False
    policy_fallback: bool = False


class ErrorItem(CamelModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class AnalyzeEnvelope(CamelModel):
    """Uniform envelope returned by POST /analyze.

    Exactly one of ``data`` (success) or ``error`` (failure) is present.
    """

    success: bool
    metadata: ResponseMetadataItem
    data: Any = None
    error: ErrorItem | None = None


class AdminCacheResponse(CamelModel):
    """Response DTO for cache administration."""

    success: bool = Field(..., description="Whether the operation succeeded")
    action: str
    removed: int = Field(..., description="Number of entries removed", ge=0)


class HealthCheckResponse(CamelModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the cache backend is reachable")
    rate_limit_healthy: bool = Field(..., description="Whether the rate-limit store is reachable")
    providers: list[str] = Field(default_factory=list, description="Registered providers")


class StatsResponse(CamelModel):
    """Response DTO for GET /stats."""

    cache: dict[str, Any]
    usage: dict[str, Any]
    policy_version: str
