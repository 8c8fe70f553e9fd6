"""Repository layer for data access and external services.

This layer hides external dependencies (Redis, model provider HTTP APIs)
behind protocol-based interfaces. This enables:
- Selecting backends at startup (in-process maps or Redis)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from .gemini_provider import GeminiProvider
from .memory_cache_repository import InMemoryCacheRepository
from .memory_rate_limit_store import InMemoryRateLimitStore
from .metrics_sinks import InMemoryMetricsSink, RedisMetricsSink
from .openai_compatible_provider import OpenAICompatibleProvider
from .redis_rate_limit_store import RedisRateLimitStore
from .redis_repository import RedisCacheRepository
from .subscription_lookup import InMemorySubscriptionLookup, tier_for_subscription

__all__ = [
    "GeminiProvider",
    "InMemoryCacheRepository",
    "InMemoryMetricsSink",
    "InMemoryRateLimitStore",
    "InMemorySubscriptionLookup",
    "OpenAICompatibleProvider",
    "RedisCacheRepository",
    "RedisMetricsSink",
    "RedisRateLimitStore",
    "tier_for_subscription",
]
