"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Swapping backends at startup (in-process maps -> Redis) via configuration
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .ai_provider import AIProvider
from .cache_store import CacheStore
from .metrics_sink import MetricsSink
from .rate_limit_store import RateLimitStore
from .subscription_lookup import SubscriptionLookup

__all__ = [
    "AIProvider",
    "CacheStore",
    "MetricsSink",
    "RateLimitStore",
    "SubscriptionLookup",
]
