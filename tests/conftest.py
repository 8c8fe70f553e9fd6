"""Shared fixtures and fakes."""

import asyncio
import base64
import json

import pytest

from ai_orchestrator.entities import AIRequest, AIResponse, CacheOptions, ImageData, ProviderName, ResponseMetadata
from ai_orchestrator.repositories import (
    InMemoryCacheRepository,
    InMemoryMetricsSink,
    InMemoryRateLimitStore,
    InMemorySubscriptionLookup,
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

ANALYSIS_PAYLOAD = {
    "productName": "Chicken breast",
    "animalWelfareScore": 3,
    "summary": "Conventionally farmed chicken.",
}

IMAGE_A = ImageData(base64=base64.b64encode(b"\x89PNG image A bytes").decode(), mime_type="image/png")
IMAGE_B = ImageData(base64=base64.b64encode(b"\x89PNG image B bytes").decode(), mime_type="image/png")


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory AIProvider that records calls."""

    def __init__(
        self,
        text: str | None = None,
        name: ProviderName = ProviderName.GEMINI,
        model: str = "gemini-2.0-flash-exp",
        delay: float = 0.0,
        supports_vision: bool = True,
        response: AIResponse | None = None,
        error: Exception | None = None,
        tokens: int | None = 120,
    ) -> None:
        self.text = json.dumps(ANALYSIS_PAYLOAD) if text is None else text
        self._name = name
        self._model = model
        self.delay = delay
        self._supports_vision = supports_vision
        self.response = response
        self.error = error
        self.tokens = tokens
        self.calls: list[AIRequest] = []
        self.closed = False

    @property
    def name(self) -> ProviderName:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    @property
    def supports_vision(self) -> bool:
        return self._supports_vision

    async def call(self, request: AIRequest) -> AIResponse:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        return AIResponse.ok(
            data={"text": self.text},
            metadata=ResponseMetadata(
                provider=self._name.value,
                model=self._model,
                latency_ms=5,
                tokens_used=self.tokens,
            ),
        )

    async def close(self) -> None:
        self.closed = True


def make_request(**overrides) -> AIRequest:
    fields = {"prompt": "Analyze the product in this image.", "image": IMAGE_A, "language": "en"}
    fields.update(overrides)
    return AIRequest(**fields)


def make_options(**overrides) -> CacheOptions:
    fields = {"prompt_template_id": "analyze_product", "prompt_version": "v2.0", "mode": "analyze"}
    fields.update(overrides)
    return CacheOptions(**fields)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policy() -> PolicyValidator:
    return PolicyValidator.create()


@pytest.fixture
def make_orchestrator(clock, policy):
    """Factory building an orchestrator over in-memory stores."""

    def factory(
        provider: FakeProvider | None = None,
        repository=None,
        metrics_sink=None,
        ip_max: int = 100,
        daily_limit: int = 0,
        tier_limits: dict[str, int] | None = None,
        subscriptions=None,
        limits: RequestLimits | None = None,
        timeout_ms: int = 30_000,
    ) -> tuple[Orchestrator, FakeProvider, CacheService]:
        provider = provider or FakeProvider()
        registry = ProviderRegistry(default=provider.name)
        registry.register(provider)
        store = InMemoryRateLimitStore()
        cache = CacheService(
            repository=repository if repository is not None else InMemoryCacheRepository(),
            metrics_sink=metrics_sink if metrics_sink is not None else InMemoryMetricsSink(),
            ttl=604800,
            clock=clock,
        )
        orchestrator = Orchestrator(
            providers=registry,
            cache=cache,
            ip_limiter=IpRateLimiter(store, max_requests=ip_max, window_ms=60_000, clock=clock),
            tiered_limiter=TieredRateLimiter(
                store,
                subscriptions or InMemorySubscriptionLookup(),
                tier_limits=tier_limits or {"free": 10, "basic": 50, "pro": 200},
                clock=clock,
            ),
            daily_quota=AnonymousDailyQuota(store, daily_limit=daily_limit, clock=clock),
            policy=policy,
            limits=limits,
            timeout_ms=timeout_ms,
        )
        return orchestrator, provider, cache

    return factory
