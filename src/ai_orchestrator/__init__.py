"""AI Orchestrator - cached, rate-limited, policy-checked LLM calls.

This package provides a layered architecture for calling vision-capable
LLM providers:

Layers:
    - protocols: Interface contracts (CacheStore, RateLimitStore, AIProvider, ...)
    - repositories: Data access and provider implementations
    - services: Business logic (cache, rate limits, policy, orchestration)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from ai_orchestrator.api.dependencies import build_services

    services = build_services()
    response = await services.orchestrator.analyze(request, cache_options, client)
    ```

For HTTP API:
    ```python
    from ai_orchestrator.api.app import app
    ```
"""

from ai_orchestrator.config import get_redis_client, settings
from ai_orchestrator.entities import (
    AIRequest,
    AIResponse,
    CacheOptions,
    CacheStrategy,
    ClientIdentity,
    ErrorCode,
    ImageData,
    ProviderName,
)
from ai_orchestrator.protocols import AIProvider, CacheStore, MetricsSink, RateLimitStore, SubscriptionLookup
from ai_orchestrator.services import CacheService, Orchestrator, PolicyValidator, ProviderRegistry

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    # Protocols (interfaces)
    "AIProvider",
    "CacheStore",
    "MetricsSink",
    "RateLimitStore",
    "SubscriptionLookup",
    # Services (business logic)
    "CacheService",
    "Orchestrator",
    "PolicyValidator",
    "ProviderRegistry",
    # Entities (domain models)
    "AIRequest",
    "AIResponse",
    "CacheOptions",
    "CacheStrategy",
    "ClientIdentity",
    "ErrorCode",
    "ImageData",
    "ProviderName",
]
