"""Request orchestration.

One call to ``Orchestrator.analyze`` runs the whole pipeline, strictly in
this order:

    validate -> rate limit -> cache lookup
        hit:  respond from cache
        miss: provider call (under a deadline) -> JSON extraction
              -> policy check -> cache write -> respond

Every outcome is an ``AIResponse`` envelope. Nothing raised by a provider,
a store, or the metrics sink reaches the caller.

Rate-limit, cache and metrics calls run in worker threads through
``asyncio.to_thread`` so blocking Redis round trips never stall the event
loop.
"""

import asyncio
import json
import time
from dataclasses import dataclass

from ai_orchestrator.config import settings
from ai_orchestrator.entities import (
    AIRequest,
    AIResponse,
    CacheOptions,
    CacheStrategy,
    ClientIdentity,
    ErrorCode,
    RateLimitDecision,
    ResponseMetadata,
)
from ai_orchestrator.exceptions import ProviderNotRegisteredError
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import AIProvider
from ai_orchestrator.services.cache_service import KEY_PREVIEW_LENGTH, CacheService
from ai_orchestrator.services.json_extraction import extract_json
from ai_orchestrator.services.policy_validator import PolicyValidator
from ai_orchestrator.services.provider_registry import ProviderRegistry
from ai_orchestrator.services.rate_limiter import AnonymousDailyQuota, IpRateLimiter, TieredRateLimiter
from ai_orchestrator.services.request_validation import RequestLimits, validate_request

logger = get_logger(__name__)

OPERATION = "analyze"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@dataclass(frozen=True)
class _RateLimitRejection:
    scope: str
    decision: RateLimitDecision
    tier: str | None = None


class Orchestrator:
    """Composes validation, rate limiting, caching, provider calls and policy.

    Example:
        ```python
        orchestrator = Orchestrator(
            providers=registry,
            cache=cache_service,
            ip_limiter=IpRateLimiter(store),
            tiered_limiter=TieredRateLimiter(store, subscriptions),
            daily_quota=AnonymousDailyQuota(store),
            policy=PolicyValidator.create(),
        )
        response = await orchestrator.analyze(request, CacheOptions("analyze_product", "v2.0", "analyze"))
        ```
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        cache: CacheService,
        ip_limiter: IpRateLimiter,
        tiered_limiter: TieredRateLimiter,
        policy: PolicyValidator,
        daily_quota: AnonymousDailyQuota | None = None,
        limits: RequestLimits | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._providers = providers
        self._cache = cache
        self._ip_limiter = ip_limiter
        self._tiered_limiter = tiered_limiter
        self._daily_quota = daily_quota
        self._policy = policy
        self._limits = limits or RequestLimits()
        self._timeout_ms = timeout_ms or settings.provider_timeout_ms

    @property
    def providers(self) -> ProviderRegistry:
        return self._providers

    @property
    def cache(self) -> CacheService:
        return self._cache

    @staticmethod
    def _failure(
        code: ErrorCode,
        message: str,
        provider: str,
        model: str,
        started: float,
        details: dict | None = None,
    ) -> AIResponse:
        return AIResponse.failure(
            code=code,
            message=message,
            metadata=ResponseMetadata(provider=provider, model=model, latency_ms=_elapsed_ms(started)),
            details=details,
        )

    def _check_rate_limits(self, client: ClientIdentity) -> _RateLimitRejection | None:
        """Apply the per-IP window to every caller, then the caller's quota.

        Authenticated callers are held to their tier's hourly bucket,
        anonymous ones to the daily quota. A forwarded user id never
        exempts an address from its window.
        """
        decision = self._ip_limiter.check(client.ip)
        if not decision.allowed:
            return _RateLimitRejection("ip", decision)

        if not client.is_anonymous:
            tier, decision = self._tiered_limiter.check(client.user_id)
            if not decision.allowed:
                return _RateLimitRejection("user", decision, tier.value)
            return None

        if self._daily_quota is not None:
            decision = self._daily_quota.check(client.ip)
            if not decision.allowed:
                return _RateLimitRejection("daily", decision)
        return None

    def _passes_policy(self, payload, lens: int | None) -> bool:
        return lens is None or self._policy.validate(payload, lens).passed

    async def _record(self, response: AIResponse, cache_hit: bool, key: str) -> None:
        await asyncio.to_thread(self._cache.record_metrics, response, OPERATION, cache_hit, key)

    async def _call_provider(self, provider: AIProvider, request: AIRequest, timeout_ms: int) -> AIResponse:
        """Race the provider call against the deadline.

        Cancelling the task cancels the in-flight httpx request, but the
        provider may still finish the work on its side.
        """
        return await asyncio.wait_for(provider.call(request), timeout=timeout_ms / 1000)

    async def analyze(
        self,
        request: AIRequest,
        cache_options: CacheOptions,
        client: ClientIdentity | None = None,
        provider_name: str | None = None,
    ) -> AIResponse:
        """Run one analysis request through the pipeline.

        Args:
            request: Prompt, optional image and generation parameters
            cache_options: Identity fields for the cache and the cache strategy
            client: Caller identity for rate limiting (anonymous if omitted)
            provider_name: Provider to use; the registry default if omitted

        Returns:
            AIResponse envelope with either ``data`` or a classified ``error``
        """
        started = time.perf_counter()
        client = client or ClientIdentity()
        requested = provider_name or self._providers.default.value

        # 1. Validate
        try:
            provider = self._providers.get(requested)
        except ProviderNotRegisteredError as e:
            return self._failure(ErrorCode.INVALID_REQUEST, str(e), str(requested), "unknown", started)

        label, model = provider.name.value, provider.model
        problem = validate_request(request, cache_options, self._limits, self._policy.lens_ids)
        if problem is None and request.image is not None and not provider.supports_vision:
            problem = f"Provider {label} does not support image input"
        if problem is not None:
            logger.info("Rejected invalid request", extra={"reason": problem})
            return self._failure(ErrorCode.INVALID_REQUEST, problem, label, model, started)

        # 2. Rate limit
        rejection = await asyncio.to_thread(self._check_rate_limits, client)
        if rejection is not None:
            decision = rejection.decision
            details = {
                "scope": rejection.scope,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "retryAfter": decision.retry_after,
            }
            if rejection.tier is not None:
                details["tier"] = rejection.tier
            return self._failure(
                ErrorCode.RATE_LIMIT,
                f"Rate limit exceeded. Try again in {decision.retry_after} seconds.",
                label,
                model,
                started,
                details=details,
            )

        # 3. Cache lookup
        key = self._cache.compute_key(request, cache_options)
        if cache_options.strategy is CacheStrategy.PREFER:
            lookup = await asyncio.to_thread(self._cache.get, key)
            entry = lookup.entry if lookup.hit else None
            if entry is not None and not self._passes_policy(entry.response_data, request.lens):
                logger.warning(
                    "Cached entry fails lens policy, treating as miss",
                    extra={"lens": request.lens, "cache_key": key[:KEY_PREVIEW_LENGTH]},
                )
                entry = None
            if entry is not None:
                response = AIResponse.ok(
                    data=entry.response_data,
                    metadata=ResponseMetadata(
                        provider=entry.provider,
                        model=entry.model,
                        latency_ms=_elapsed_ms(started),
                        tokens_used=entry.tokens_used,
                        cache_hit=True,
                    ),
                )
                await self._record(response, cache_hit=True, key=key)
                return response

        # 4. Provider call under a deadline
        timeout_ms = request.timeout_ms or self._timeout_ms
        try:
            raw = await self._call_provider(provider, request, timeout_ms)
        except asyncio.TimeoutError:
            logger.warning(
                "Provider call timed out",
                extra={"provider": label, "timeout_ms": timeout_ms, "cache_key": key[:KEY_PREVIEW_LENGTH]},
            )
            return self._failure(
                ErrorCode.TIMEOUT,
                f"Request timed out after {timeout_ms}ms",
                label,
                model,
                started,
                details={"timeoutMs": timeout_ms},
            )
        except Exception:  # providers are expected to return envelopes
            logger.exception("Provider raised unexpectedly", extra={"provider": label})
            return self._failure(ErrorCode.UNKNOWN, "An unexpected error occurred", label, model, started)

        if not raw.success:
            return raw.with_metadata(latency_ms=_elapsed_ms(started))

        text = raw.text
        if text is None:
            logger.error("Provider returned no text", extra={"provider": label})
            return self._failure(ErrorCode.PROVIDER_ERROR, "Provider returned no text", label, model, started)

        # 5. JSON extraction
        try:
            payload = extract_json(text)
        except json.JSONDecodeError as e:
            logger.error(
                "Failed to parse provider response as JSON",
                extra={"provider": label, "parse_error": e.msg, "position": e.pos},
            )
            return self._failure(
                ErrorCode.PROVIDER_ERROR,
                "Failed to parse AI response",
                label,
                model,
                started,
                details={"parseError": e.msg, "line": e.lineno, "column": e.colno, "position": e.pos},
            )

        metadata = ResponseMetadata(
            provider=raw.metadata.provider,
            model=raw.metadata.model,
            latency_ms=_elapsed_ms(started),
            tokens_used=raw.metadata.tokens_used,
        )

        # 6. Policy
        if request.lens is not None:
            result = self._policy.validate(payload, request.lens)
            if not result.passed:
                response = AIResponse.ok(
                    data=self._policy.fallback_for(request.lens),
                    metadata=ResponseMetadata(
                        provider=metadata.provider,
                        model=metadata.model,
                        latency_ms=metadata.latency_ms,
                        tokens_used=metadata.tokens_used,
                        policy_fallback=True,
                    ),
                )
                logger.warning(
                    "Serving lens fallback",
                    extra={"lens": request.lens, "violation_count": len(result.violations)},
                )
                await self._record(response, cache_hit=False, key=key)
                return response

        # 7. Cache write, unless the answer was shaped by a user correction
        response = AIResponse.ok(data=payload, metadata=metadata)
        if request.additional_info and request.additional_info.strip():
            logger.info("Skipping cache write for corrected request", extra={"cache_key": key[:KEY_PREVIEW_LENGTH]})
        else:
            await asyncio.to_thread(self._cache.put, key, response, cache_options)
        await self._record(response, cache_hit=False, key=key)
        return response
