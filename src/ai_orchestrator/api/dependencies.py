"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Backends chosen from settings in ``build_services`` (never module singletons)
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
"""

import asyncio
from dataclasses import dataclass
from typing import Annotated

import redis
from fastapi import Depends, Request

from ai_orchestrator.config import Settings, get_redis_client, settings
from ai_orchestrator.entities import ProviderName
from ai_orchestrator.exceptions import StoreUnavailableError
from ai_orchestrator.handlers import AdminHandler, AnalysisHandler
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import AIProvider, CacheStore, MetricsSink, RateLimitStore, SubscriptionLookup
from ai_orchestrator.repositories import (
    GeminiProvider,
    InMemoryCacheRepository,
    InMemoryMetricsSink,
    InMemoryRateLimitStore,
    InMemorySubscriptionLookup,
    OpenAICompatibleProvider,
    RedisCacheRepository,
    RedisMetricsSink,
    RedisRateLimitStore,
)
from ai_orchestrator.services import (
    AnonymousDailyQuota,
    CacheService,
    IpRateLimiter,
    Orchestrator,
    PolicyValidator,
    ProviderRegistry,
    RequestLimits,
    TieredRateLimiter,
)

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything the HTTP layer needs, wired once at startup."""

    orchestrator: Orchestrator
    cache_service: CacheService
    rate_limit_store: RateLimitStore
    subscriptions: SubscriptionLookup
    providers: ProviderRegistry
    policy: PolicyValidator
    analysis_handler: AnalysisHandler
    admin_handler: AdminHandler


def _default_providers(config: Settings) -> list[AIProvider]:
    """Providers whose API keys are configured."""
    providers: list[AIProvider] = []
    timeout = config.provider_timeout_ms / 1000 + 5
    if config.gemini_api_key:
        providers.append(
            GeminiProvider(
                api_key=config.gemini_api_key,
                model=config.gemini_model,
                base_url=config.gemini_base_url,
                timeout=timeout,
            )
        )
    if config.openai_compat_api_key:
        providers.append(
            OpenAICompatibleProvider(
                api_key=config.openai_compat_api_key,
                model=config.openai_compat_model,
                base_url=config.openai_compat_base_url,
                timeout=timeout,
            )
        )
    return providers


def build_services(
    config: Settings | None = None,
    providers: list[AIProvider] | None = None,
    redis_client: redis.Redis | None = None,
    subscriptions: SubscriptionLookup | None = None,
) -> Services:
    """Wire repositories, services and handlers from settings.

    Args:
        config: Settings to use. Defaults to the global settings.
        providers: Providers to register. Defaults to every provider with
            a configured API key.
        redis_client: Shared client for Redis-backed stores. Created lazily
            from REDIS_URL when a Redis backend is selected.
        subscriptions: Tier lookup. Defaults to an in-process lookup using
            the configured product ids.
    """
    config = config or settings
    uses_redis = "redis" in (config.cache_backend, config.rate_limit_backend, config.metrics_backend)
    if uses_redis and redis_client is None:
        redis_client = get_redis_client(config)

    repository: CacheStore
    if config.cache_backend == "redis":
        repository = RedisCacheRepository.create(redis_client=redis_client, key_prefix=config.cache_key_prefix)
    else:
        repository = InMemoryCacheRepository.create()

    metrics_sink: MetricsSink
    if config.metrics_backend == "redis":
        metrics_sink = RedisMetricsSink(redis_client=redis_client)
    else:
        metrics_sink = InMemoryMetricsSink()

    rate_limit_store: RateLimitStore
    if config.rate_limit_backend == "redis":
        rate_limit_store = RedisRateLimitStore(redis_client=redis_client)
    else:
        rate_limit_store = InMemoryRateLimitStore(sweep_interval=config.rate_limit_sweep_interval)

    subscriptions = subscriptions or InMemorySubscriptionLookup(
        basic_product_ids=config.basic_product_ids,
        pro_product_ids=config.pro_product_ids,
    )

    registry = ProviderRegistry(default=ProviderName(config.default_provider))
    for provider in _default_providers(config) if providers is None else providers:
        registry.register(provider)
    if config.default_provider not in registry:
        logger.warning(
            "Default provider is not registered; requests without an explicit provider will fail",
            extra={"default_provider": config.default_provider},
        )

    policy = PolicyValidator.create(config.policy_table_path)
    cache_service = CacheService(repository=repository, metrics_sink=metrics_sink, ttl=config.cache_ttl)
    orchestrator = Orchestrator(
        providers=registry,
        cache=cache_service,
        ip_limiter=IpRateLimiter(
            rate_limit_store,
            max_requests=config.ip_rate_limit_max,
            window_ms=config.ip_rate_limit_window_ms,
        ),
        tiered_limiter=TieredRateLimiter(rate_limit_store, subscriptions, tier_limits=config.tier_limits),
        daily_quota=AnonymousDailyQuota(rate_limit_store, daily_limit=config.anonymous_daily_limit),
        policy=policy,
        limits=RequestLimits(
            max_image_bytes=config.max_image_bytes,
            max_text_length=config.max_text_length,
            max_prompt_length=config.max_prompt_length,
        ),
        timeout_ms=config.provider_timeout_ms,
    )

    logger.info(
        "Services initialized",
        extra={
            "cache_backend": config.cache_backend,
            "rate_limit_backend": config.rate_limit_backend,
            "metrics_backend": config.metrics_backend,
            "providers": registry.names(),
            "policy_version": policy.version,
        },
    )

    return Services(
        orchestrator=orchestrator,
        cache_service=cache_service,
        rate_limit_store=rate_limit_store,
        subscriptions=subscriptions,
        providers=registry,
        policy=policy,
        analysis_handler=AnalysisHandler(orchestrator=orchestrator),
        admin_handler=AdminHandler(
            cache_service=cache_service,
            rate_limit_store=rate_limit_store,
            providers=registry,
            policy=policy,
            admin_token=config.admin_api_token,
        ),
    )


async def sweep_cache_periodically(cache_service: CacheService, interval: float) -> None:
    """Purge expired cache entries every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(cache_service.purge_expired)
        except StoreUnavailableError as e:
            logger.warning("Background cache sweep failed", extra={"error": str(e)})


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Check lifespan setup.")
    return value


def get_services(request: Request) -> Services:
    """Dependency injection for the Services container from app.state."""
    return _from_state(request, "services")


def get_analysis_handler(request: Request) -> AnalysisHandler:
    return get_services(request).analysis_handler


def get_admin_handler(request: Request) -> AdminHandler:
    return get_services(request).admin_handler


# Type aliases for cleaner dependency injection
AnalysisHandlerDep = Annotated[AnalysisHandler, Depends(get_analysis_handler)]
AdminHandlerDep = Annotated[AdminHandler, Depends(get_admin_handler)]
ServicesDep = Annotated[Services, Depends(get_services)]
