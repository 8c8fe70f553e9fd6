"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .ai_request import AIRequest, CacheOptions, CacheStrategy, ClientIdentity, ImageData, ProviderName
from .ai_response import AIError, AIResponse, ErrorCode, ResponseMetadata
from .cache_entry import CacheEntryEntity, CacheLookup
from .policy import PolicyResult, PolicyRule
from .rate_limit import RateLimitDecision, RateLimitRecord, Tier
from .usage import UsageRecord

__all__ = [
    "AIError",
    "AIRequest",
    "AIResponse",
    "CacheEntryEntity",
    "CacheLookup",
    "CacheOptions",
    "CacheStrategy",
    "ClientIdentity",
    "ErrorCode",
    "ImageData",
    "PolicyResult",
    "PolicyRule",
    "ProviderName",
    "RateLimitDecision",
    "RateLimitRecord",
    "ResponseMetadata",
    "Tier",
    "UsageRecord",
]
