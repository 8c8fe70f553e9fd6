"""Cache service for core business logic.

This service owns cache-key derivation, expiry, hit bookkeeping and usage
metrics. It coordinates the cache repository (response storage) and the
metrics sink (usage / cost records), and it is the single place where a
store outage is turned into a cache miss or a skipped write.
"""

import hashlib
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import replace

from ai_orchestrator.config import settings
from ai_orchestrator.entities import (
    AIRequest,
    AIResponse,
    CacheEntryEntity,
    CacheLookup,
    CacheOptions,
    UsageRecord,
)
from ai_orchestrator.exceptions import CorruptEntryError, StoreUnavailableError
from ai_orchestrator.fingerprint import fingerprint_base64, language_family, normalize_text
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import CacheStore, MetricsSink
from ai_orchestrator.services.pricing import estimate_cost

logger = get_logger(__name__)

KEY_PREVIEW_LENGTH = 16
KEY_HASH_LENGTH = 32


class CacheService:
    """Content-addressed response cache.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: in-process map or Redis hashes
    - MetricsSink: bounded in-process buffer or Redis list

    Example:
        ```python
        from ai_orchestrator.repositories import InMemoryCacheRepository, InMemoryMetricsSink
        from ai_orchestrator.services import CacheService

        cache = CacheService.create(
            repository=InMemoryCacheRepository.create(),
            metrics_sink=InMemoryMetricsSink(),
        )
        key = cache.compute_key(request, options)
        lookup = cache.get(key)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        metrics_sink: MetricsSink,
        ttl: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache service.

        Args:
            repository: Cache storage backend (required).
            metrics_sink: Destination for usage records (required).
            ttl: Time-to-live for cache entries in seconds. Defaults to settings.
            clock: Returns the current Unix time; injectable for tests.
        """
        self._repository = repository
        self._metrics = metrics_sink
        self._ttl = ttl or settings.cache_ttl
        self._clock = clock

    @classmethod
    def create(
        cls,
        repository: CacheStore,
        metrics_sink: MetricsSink,
        ttl: int | None = None,
    ) -> "CacheService":
        """Factory method to create CacheService with settings defaults."""
        return cls(repository=repository, metrics_sink=metrics_sink, ttl=ttl)

    @property
    def ttl(self) -> int:
        return self._ttl

    @staticmethod
    def compute_key(request: AIRequest, options: CacheOptions) -> str:
        """Derive the cache key from the identity fields of a request.

        Only the template id and version, mode, lens, language family,
        image fingerprint and normalized focus item take part. The lens is
        a policy scope, so answers vetted for one lens never serve another.
        The free-text user correction (``additional_info``) and sampling
        parameters do not take part; corrected answers are kept out of the
        cache by the orchestrator instead.

        Returns:
            64-character hex SHA-256 digest
        """
        image_fp = fingerprint_base64(request.image.base64) if request.image else "none"
        focus = normalize_text(options.focus_item) if options.focus_item else ""
        parts = [
            f"tpl:{options.prompt_template_id}",
            f"ver:{options.prompt_version}",
            f"mode:{options.mode}",
            f"lens:{'' if request.lens is None else request.lens}",
            f"lang:{language_family(request.language)}",
            f"img:{image_fp}",
            f"focus:{focus}",
        ]
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

    def get(self, key: str) -> CacheLookup:
        """Look up a live entry.

        A hit requires the key to be present and ``expires_at`` to lie in
        the future. On a hit the hit counter and last-access time are bumped
        as a side effect whose failure never fails the read. Store outages
        are reported as misses.
        """
        now = self._clock()
        try:
            entry = self._repository.get(key)
        except (StoreUnavailableError, CorruptEntryError) as e:
            logger.warning(
                "Cache read failed, treating as miss",
                extra={"cache_key": key[:KEY_PREVIEW_LENGTH], "error": str(e)},
            )
            return CacheLookup(hit=False)

        if entry is None:
            logger.debug("Cache miss", extra={"cache_key": key[:KEY_PREVIEW_LENGTH]})
            return CacheLookup(hit=False)

        if entry.is_expired(now):
            logger.debug("Cache entry expired", extra={"cache_key": key[:KEY_PREVIEW_LENGTH]})
            return CacheLookup(hit=False)

        try:
            self._repository.touch(key, now)
        except StoreUnavailableError as e:
            logger.warning(
                "Failed to update cache hit count",
                extra={"cache_key": key[:KEY_PREVIEW_LENGTH], "error": str(e)},
            )

        entry = replace(entry, hit_count=entry.hit_count + 1, last_accessed_at=now)
        logger.info(
            "Cache hit",
            extra={"cache_key": key[:KEY_PREVIEW_LENGTH], "hit_count": entry.hit_count},
        )
        return CacheLookup(hit=True, entry=entry)

    def put(self, key: str, response: AIResponse, options: CacheOptions) -> bool:
        """Store a successful, policy-clean response.

        Returns:
            True if the entry was written, False if the write was skipped
        """
        if not response.success:
            return False

        now = self._clock()
        entry = CacheEntryEntity(
            key=key,
            response_data=response.data,
            provider=response.metadata.provider,
            model=response.metadata.model,
            latency_ms=response.metadata.latency_ms,
            tokens_used=response.metadata.tokens_used,
            created_at=now,
            expires_at=now + self._ttl,
            prompt_template_id=options.prompt_template_id,
            prompt_version=options.prompt_version,
        )
        try:
            self._repository.put(entry)
        except StoreUnavailableError as e:
            logger.warning(
                "Cache write skipped",
                extra={"cache_key": key[:KEY_PREVIEW_LENGTH], "error": str(e)},
            )
            return False

        logger.info(
            "Cached response",
            extra={"cache_key": key[:KEY_PREVIEW_LENGTH], "ttl_seconds": self._ttl},
        )
        return True

    def record_metrics(
        self,
        response: AIResponse,
        operation: str,
        cache_hit: bool,
        cache_key: str | None = None,
    ) -> UsageRecord | None:
        """Append a usage / cost record. Never raises for sink outages.

        Cache hits cost nothing, since no provider tokens were spent.
        """
        metadata = response.metadata
        usage = UsageRecord(
            timestamp=self._clock(),
            provider=metadata.provider,
            model=metadata.model,
            operation=operation,
            latency_ms=metadata.latency_ms,
            tokens_used=metadata.tokens_used,
            cache_hit=cache_hit,
            cache_key_hash=cache_key[:KEY_HASH_LENGTH] if cache_key else None,
            estimated_cost_usd=0.0 if cache_hit else estimate_cost(metadata.model, metadata.tokens_used),
        )
        try:
            self._metrics.record(usage)
        except StoreUnavailableError as e:
            logger.warning("Usage metrics dropped", extra={"operation": operation, "error": str(e)})
            return None
        return usage

    # Administration. These propagate StoreUnavailableError to the caller.

    def purge_expired(self) -> int:
        """Physically delete entries that are past their expiry."""
        removed = self._repository.delete_expired(self._clock())
        if removed:
            logger.info("Purged expired cache entries", extra={"removed": removed})
        return removed

    def invalidate_by_prompt(self, template_id: str, version: str | None = None) -> int:
        removed = self._repository.invalidate_by_prompt(template_id, version)
        logger.info(
            "Invalidated cache by prompt",
            extra={"prompt_template_id": template_id, "prompt_version": version, "removed": removed},
        )
        return removed

    def invalidate_by_model(self, model: str) -> int:
        removed = self._repository.invalidate_by_model(model)
        logger.info("Invalidated cache by model", extra={"model": model, "removed": removed})
        return removed

    def invalidate_key(self, key: str) -> int:
        return 1 if self._repository.delete_by_key(key) else 0

    def clear(self) -> int:
        removed = self._repository.clear_all()
        logger.warning("Cache flushed", extra={"removed": removed})
        return removed

    def get_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with backend statistics and the configured TTL
        """
        stats = dict(self._repository.get_stats())
        stats["ttl_seconds"] = self._ttl
        return stats

    def usage_summary(self, limit: int = 1000) -> dict:
        """Aggregate the most recent usage records."""
        try:
            records = self._metrics.recent(limit)
        except StoreUnavailableError as e:
            logger.warning("Usage metrics unavailable", extra={"error": str(e)})
            return {"available": False}

        hits = sum(1 for record in records if record.cache_hit)
        return {
            "available": True,
            "requests": len(records),
            "cache_hits": hits,
            "hit_rate": round(hits / len(records), 4) if records else 0.0,
            "total_tokens": sum(record.tokens_used or 0 for record in records),
            "estimated_cost_usd": round(sum(record.estimated_cost_usd for record in records), 6),
            "by_model": dict(Counter(record.model for record in records)),
        }

    def health_check(self) -> bool:
        return self._repository.health_check()
