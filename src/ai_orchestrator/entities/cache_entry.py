"""Cache entry domain entity."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached provider response.

    Timestamps are Unix seconds. An entry is logically dead once
    ``expires_at`` has passed, whether or not it is still stored.

    Attributes:
        key: Content-addressed cache key
        response_data: Parsed, policy-clean response payload
        provider: Provider that produced the response
        model: Model that produced the response
        latency_ms: Provider latency when the entry was created
        created_at: When the entry was written
        expires_at: When the entry stops being served
        hit_count: Number of times the entry has been served from cache
        last_accessed_at: Last time the entry was served
        tokens_used: Tokens reported by the provider, if any
        prompt_template_id: Template id, used for targeted invalidation
        prompt_version: Template version, used for targeted invalidation
    """

    key: str
    response_data: Any
    provider: str
    model: str
    latency_ms: int
    created_at: float
    expires_at: float
    hit_count: int = 0
    last_accessed_at: float | None = None
    tokens_used: int | None = None
    prompt_template_id: str | None = None
    prompt_version: str | None = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read."""

    hit: bool
    entry: CacheEntryEntity | None = None
