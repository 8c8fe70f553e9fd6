"""End-to-end tests for the orchestration pipeline."""

import json
import threading
import time
from unittest.mock import MagicMock

import pytest

from ai_orchestrator.entities import (
    AIResponse,
    CacheStrategy,
    ClientIdentity,
    ErrorCode,
    ImageData,
    ProviderName,
    ResponseMetadata,
)
from ai_orchestrator.exceptions import StoreUnavailableError
from ai_orchestrator.repositories import InMemoryCacheRepository, InMemoryMetricsSink, InMemorySubscriptionLookup
from ai_orchestrator.services import RequestLimits
from conftest import ANALYSIS_PAYLOAD, FakeProvider, make_options, make_request

TOFU_SUGGESTIONS = {
    "ethicalLensPosition": "Higher-Welfare Omnivore",
    "suggestions": [
        {
            "name": "Smoked tofu",
            "description": "Firm tofu with a smoky flavour",
            "confidence": "high",
            "reasoning": "Similar texture",
            "availability": "Most supermarkets",
        }
    ],
    "generalNote": "",
}


@pytest.mark.asyncio
async def test_second_identical_request_is_served_from_cache(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator()

    first = await orchestrator.analyze(make_request(), make_options())
    second = await orchestrator.analyze(make_request(), make_options())

    assert first.success is True
    assert first.metadata.cache_hit is False
    assert second.success is True
    assert second.metadata.cache_hit is True
    assert len(provider.calls) == 1
    assert json.dumps(second.data, sort_keys=True) == json.dumps(first.data, sort_keys=True)
    assert first.data == ANALYSIS_PAYLOAD


@pytest.mark.asyncio
async def test_user_correction_reuses_cached_entry(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator()

    await orchestrator.analyze(make_request(), make_options())
    corrected = await orchestrator.analyze(make_request(additional_info="It's turkey, not chicken"), make_options())

    assert corrected.metadata.cache_hit is True
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_corrected_answer_is_not_shared_with_other_users(make_orchestrator):
    repository = MagicMock(wraps=InMemoryCacheRepository())
    orchestrator, provider, _ = make_orchestrator(repository=repository)

    corrected = await orchestrator.analyze(
        make_request(additional_info="It's my grandma's homemade turkey"), make_options()
    )
    plain = await orchestrator.analyze(make_request(), make_options())

    assert corrected.success is True
    assert plain.metadata.cache_hit is False
    assert len(provider.calls) == 2
    assert repository.put.call_count == 1


@pytest.mark.asyncio
async def test_new_prompt_version_misses(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator()

    await orchestrator.analyze(make_request(), make_options())
    response = await orchestrator.analyze(make_request(), make_options(prompt_version="v2.1"))

    assert response.metadata.cache_hit is False
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_bypass_skips_read_but_still_writes(make_orchestrator):
    orchestrator, provider, cache = make_orchestrator()

    await orchestrator.analyze(make_request(), make_options(strategy=CacheStrategy.BYPASS))
    await orchestrator.analyze(make_request(), make_options(strategy=CacheStrategy.BYPASS))
    assert len(provider.calls) == 2

    cached = await orchestrator.analyze(make_request(), make_options())
    assert cached.metadata.cache_hit is True
    assert cache.get_stats()["total_entries"] == 1


@pytest.mark.asyncio
async def test_code_fences_are_stripped(make_orchestrator):
    provider = FakeProvider(text=f"```json\n{json.dumps(ANALYSIS_PAYLOAD)}\n```")
    orchestrator, _, _ = make_orchestrator(provider=provider)

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.success is True
    assert response.data == ANALYSIS_PAYLOAD


@pytest.mark.asyncio
async def test_unparseable_output_is_an_error_and_not_cached(make_orchestrator):
    repository = MagicMock(wraps=InMemoryCacheRepository())
    provider = FakeProvider(text="Sure! Here is the analysis: {broken")
    orchestrator, _, _ = make_orchestrator(provider=provider, repository=repository)

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.success is False
    assert response.data is None
    assert response.error.code is ErrorCode.PROVIDER_ERROR
    assert "parseError" in response.error.details
    repository.put.assert_not_called()


@pytest.mark.asyncio
async def test_policy_violation_returns_fallback_and_is_not_cached(make_orchestrator, policy):
    repository = MagicMock(wraps=InMemoryCacheRepository())
    provider = FakeProvider(text=json.dumps(TOFU_SUGGESTIONS))
    orchestrator, _, _ = make_orchestrator(provider=provider, repository=repository)
    request = make_request(lens=1)

    first = await orchestrator.analyze(request, make_options(mode="suggest"))
    second = await orchestrator.analyze(request, make_options(mode="suggest"))

    assert first.success is True
    assert first.metadata.policy_fallback is True
    assert first.data == policy.fallback_for(1)
    assert first.data["ethicalLensPosition"] == "Higher-Welfare Omnivore"
    assert policy.validate(first.data, 1).passed is True
    assert second.data == first.data
    assert second.metadata.cache_hit is False
    assert len(provider.calls) == 2
    repository.put.assert_not_called()


@pytest.mark.asyncio
async def test_clean_lens_output_is_cached(make_orchestrator):
    clean = dict(TOFU_SUGGESTIONS, suggestions=[{"name": "Free-range chicken", "description": "Outdoor access"}])
    orchestrator, provider, _ = make_orchestrator(provider=FakeProvider(text=json.dumps(clean)))

    first = await orchestrator.analyze(make_request(lens=1), make_options(mode="suggest"))
    second = await orchestrator.analyze(make_request(lens=1), make_options(mode="suggest"))

    assert first.metadata.policy_fallback is False
    assert second.metadata.cache_hit is True
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_unrestricted_lens_answer_never_serves_stricter_lens(make_orchestrator, policy):
    orchestrator, provider, _ = make_orchestrator(provider=FakeProvider(text=json.dumps(TOFU_SUGGESTIONS)))

    unrestricted = await orchestrator.analyze(make_request(lens=4), make_options(mode="suggest"))
    strict = await orchestrator.analyze(make_request(lens=1), make_options(mode="suggest"))

    assert unrestricted.data == TOFU_SUGGESTIONS
    assert strict.metadata.cache_hit is False
    assert strict.metadata.policy_fallback is True
    assert policy.validate(strict.data, 1).passed is True
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_cached_entry_failing_policy_is_treated_as_miss(make_orchestrator):
    clean = dict(TOFU_SUGGESTIONS, suggestions=[{"name": "Free-range chicken", "description": "Outdoor access"}])
    orchestrator, provider, cache = make_orchestrator(provider=FakeProvider(text=json.dumps(clean)))
    request, options = make_request(lens=1), make_options(mode="suggest")
    stale = AIResponse.ok(
        data=TOFU_SUGGESTIONS,
        metadata=ResponseMetadata(provider="gemini", model="gemini-2.0-flash-exp", latency_ms=10),
    )
    cache.put(cache.compute_key(request, options), stale, options)

    response = await orchestrator.analyze(request, options)

    assert response.metadata.cache_hit is False
    assert response.data == clean
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_slow_provider_times_out_near_deadline(make_orchestrator):
    orchestrator, _, cache = make_orchestrator(provider=FakeProvider(delay=5))

    started = time.perf_counter()
    response = await orchestrator.analyze(make_request(timeout_ms=100), make_options())
    elapsed = time.perf_counter() - started

    assert response.success is False
    assert response.error.code is ErrorCode.TIMEOUT
    assert response.error.details == {"timeoutMs": 100}
    assert elapsed < 2
    assert cache.get_stats()["total_entries"] == 0


@pytest.mark.asyncio
async def test_default_timeout_applies(make_orchestrator):
    orchestrator, _, _ = make_orchestrator(provider=FakeProvider(delay=5), timeout_ms=50)

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.error.code is ErrorCode.TIMEOUT


@pytest.mark.asyncio
async def test_provider_exception_becomes_unknown_error(make_orchestrator):
    orchestrator, _, _ = make_orchestrator(provider=FakeProvider(error=RuntimeError("socket exploded")))

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.error.code is ErrorCode.UNKNOWN
    assert "socket" not in response.error.message


@pytest.mark.asyncio
async def test_provider_failure_is_passed_through_and_not_cached(make_orchestrator):
    failure = AIResponse.failure(
        code=ErrorCode.RATE_LIMIT,
        message="Rate limit exceeded. Please try again later.",
        metadata=ResponseMetadata(provider="gemini", model="gemini-2.0-flash-exp", latency_ms=3),
        details={"status": 429},
    )
    repository = MagicMock(wraps=InMemoryCacheRepository())
    orchestrator, _, _ = make_orchestrator(provider=FakeProvider(response=failure), repository=repository)

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.error.code is ErrorCode.RATE_LIMIT
    assert response.error.details == {"status": 429}
    repository.put.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "request_overrides,option_overrides",
    [
        ({"prompt": ""}, {}),
        ({"prompt": "   "}, {}),
        ({"image": ImageData(base64="AAAA", mime_type="")}, {}),
        ({"image": ImageData(base64="", mime_type="image/png")}, {}),
        ({"image": ImageData(base64="AAAA", mime_type="application/pdf")}, {}),
        ({"additional_info": "x" * 5001}, {}),
        ({}, {"focus_item": "x" * 5001}),
        ({"temperature": 3.0}, {}),
        ({"max_tokens": 0}, {}),
        ({"timeout_ms": -1}, {}),
        ({"lens": 9}, {}),
        ({}, {"prompt_version": ""}),
    ],
)
async def test_invalid_requests_never_reach_provider_or_cache(make_orchestrator, request_overrides, option_overrides):
    repository = MagicMock(wraps=InMemoryCacheRepository())
    orchestrator, provider, _ = make_orchestrator(repository=repository)

    response = await orchestrator.analyze(make_request(**request_overrides), make_options(**option_overrides))

    assert response.success is False
    assert response.error.code is ErrorCode.INVALID_REQUEST
    assert provider.calls == []
    repository.get.assert_not_called()


@pytest.mark.asyncio
async def test_oversized_image_is_rejected(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator(limits=RequestLimits(max_image_bytes=10))

    image = ImageData(base64="A" * 100, mime_type="image/jpeg")
    response = await orchestrator.analyze(make_request(image=image), make_options())

    assert response.error.code is ErrorCode.INVALID_REQUEST
    assert provider.calls == []


@pytest.mark.asyncio
async def test_image_requires_vision_capable_provider(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator(provider=FakeProvider(supports_vision=False))

    with_image = await orchestrator.analyze(make_request(), make_options())
    text_only = await orchestrator.analyze(make_request(image=None), make_options())

    assert with_image.error.code is ErrorCode.INVALID_REQUEST
    assert text_only.success is True
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_unregistered_provider_is_invalid(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator()

    unregistered = await orchestrator.analyze(
        make_request(), make_options(), provider_name=ProviderName.OPENAI_COMPATIBLE.value
    )
    unknown = await orchestrator.analyze(make_request(), make_options(), provider_name="mystery")

    assert unregistered.error.code is ErrorCode.INVALID_REQUEST
    assert unknown.error.code is ErrorCode.INVALID_REQUEST
    assert provider.calls == []


@pytest.mark.asyncio
async def test_anonymous_ip_rate_limit(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator(ip_max=2)
    client = ClientIdentity(ip="203.0.113.7")

    for _ in range(2):
        assert (await orchestrator.analyze(make_request(), make_options(), client)).success is True
    limited = await orchestrator.analyze(make_request(), make_options(), client)

    assert limited.error.code is ErrorCode.RATE_LIMIT
    assert limited.error.details["scope"] == "ip"
    assert limited.error.details["retryAfter"] > 0
    assert len(provider.calls) == 1

    other = await orchestrator.analyze(make_request(), make_options(), ClientIdentity(ip="198.51.100.1"))
    assert other.success is True


@pytest.mark.asyncio
async def test_anonymous_daily_quota(make_orchestrator):
    orchestrator, _, _ = make_orchestrator(ip_max=100, daily_limit=1)
    client = ClientIdentity(ip="203.0.113.7")

    assert (await orchestrator.analyze(make_request(), make_options(), client)).success is True
    limited = await orchestrator.analyze(make_request(), make_options(), client)

    assert limited.error.code is ErrorCode.RATE_LIMIT
    assert limited.error.details["scope"] == "daily"


@pytest.mark.asyncio
async def test_authenticated_users_use_tier_quota(make_orchestrator):
    subscriptions = InMemorySubscriptionLookup(basic_product_ids=("prod_basic",))
    subscriptions.set_subscription("user-1", "active", "prod_basic")
    orchestrator, _, _ = make_orchestrator(
        ip_max=100,
        subscriptions=subscriptions,
        tier_limits={"free": 1, "basic": 2, "pro": 3},
    )
    client = ClientIdentity(ip="203.0.113.7", user_id="user-1")

    assert (await orchestrator.analyze(make_request(), make_options(), client)).success is True
    assert (await orchestrator.analyze(make_request(), make_options(), client)).success is True
    limited = await orchestrator.analyze(make_request(), make_options(), client)

    assert limited.error.code is ErrorCode.RATE_LIMIT
    assert limited.error.details["scope"] == "user"
    assert limited.error.details["tier"] == "basic"


@pytest.mark.asyncio
async def test_rotating_user_ids_do_not_escape_ip_window(make_orchestrator):
    orchestrator, provider, _ = make_orchestrator(ip_max=1, tier_limits={"free": 100, "basic": 100, "pro": 100})

    responses = [
        await orchestrator.analyze(make_request(), make_options(), ClientIdentity(ip="203.0.113.7", user_id=f"user-{i}"))
        for i in range(3)
    ]

    assert responses[0].success is True
    assert [r.error.details["scope"] for r in responses[1:]] == ["ip", "ip"]
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_cache_store_outage_does_not_fail_requests(make_orchestrator):
    repository = MagicMock()
    repository.get.side_effect = StoreUnavailableError("cache", "get")
    repository.put.side_effect = StoreUnavailableError("cache", "put")
    orchestrator, provider, _ = make_orchestrator(repository=repository)

    first = await orchestrator.analyze(make_request(), make_options())
    second = await orchestrator.analyze(make_request(), make_options())

    assert first.success is True and second.success is True
    assert second.metadata.cache_hit is False
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_usage_is_recorded_for_misses_and_hits(make_orchestrator):
    sink = InMemoryMetricsSink()
    orchestrator, _, _ = make_orchestrator(metrics_sink=sink)

    await orchestrator.analyze(make_request(), make_options())
    await orchestrator.analyze(make_request(), make_options())

    newest, oldest = sink.recent()
    assert oldest.cache_hit is False
    assert oldest.tokens_used == 120
    assert oldest.estimated_cost_usd > 0
    assert newest.cache_hit is True
    assert newest.estimated_cost_usd == 0.0


@pytest.mark.asyncio
async def test_metrics_outage_does_not_fail_requests(make_orchestrator):
    sink = MagicMock()
    sink.record.side_effect = StoreUnavailableError("metrics", "record")
    orchestrator, _, _ = make_orchestrator(metrics_sink=sink)

    response = await orchestrator.analyze(make_request(), make_options())

    assert response.success is True


@pytest.mark.asyncio
async def test_envelope_serialization(make_orchestrator):
    orchestrator, _, _ = make_orchestrator()

    body = (await orchestrator.analyze(make_request(), make_options())).to_dict()

    assert body["success"] is True
    assert "error" not in body
    assert body["metadata"]["cacheHit"] is False
    assert body["metadata"]["tokensUsed"] == 120
    assert body["metadata"]["provider"] == "gemini"


@pytest.mark.asyncio
async def test_store_calls_run_off_the_event_loop_thread(make_orchestrator):
    inner = InMemoryCacheRepository()
    repository = MagicMock(wraps=inner)
    threads = []
    repository.get.side_effect = lambda key: threads.append(threading.get_ident()) or inner.get(key)
    orchestrator, _, _ = make_orchestrator(repository=repository)

    await orchestrator.analyze(make_request(), make_options())

    assert threads
    assert threading.get_ident() not in threads
