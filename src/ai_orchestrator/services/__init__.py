"""Service layer for business logic.

This layer contains the core business logic and orchestration.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access / Providers)

Usage:
    ```python
    from ai_orchestrator.services import Orchestrator

    response = await orchestrator.analyze(request, cache_options, client)
    ```
"""

from .cache_service import CacheService
from .json_extraction import extract_json, strip_code_fences
from .orchestrator import Orchestrator
from .policy_validator import PolicyValidator, load_policy_table
from .pricing import estimate_cost
from .provider_registry import ProviderRegistry
from .rate_limiter import AnonymousDailyQuota, BucketRateLimiter, IpRateLimiter, TieredRateLimiter
from .request_validation import RequestLimits, validate_request

__all__ = [
    "AnonymousDailyQuota",
    "BucketRateLimiter",
    "CacheService",
    "IpRateLimiter",
    "Orchestrator",
    "PolicyValidator",
    "ProviderRegistry",
    "RequestLimits",
    "TieredRateLimiter",
    "estimate_cost",
    "extract_json",
    "load_policy_table",
    "strip_code_fences",
    "validate_request",
]
