"""Request rate limiting.

Three limiters share one increment-or-reject store:

- ``IpRateLimiter``: per-IP window aligned to the first request in it
  (default 30 requests per minute) for anonymous traffic.
- ``BucketRateLimiter``: calendar-aligned buckets (floor of the timestamp to
  the bucket size). Used hourly for authenticated users and daily for the
  anonymous quota.
- ``TieredRateLimiter``: resolves a user's subscription tier and applies the
  tier's hourly quota through a ``BucketRateLimiter``.

Every limiter fails open. When the counter store is unreachable the request
is allowed and the outage is logged.
"""

import math
import time
from collections.abc import Callable

from ai_orchestrator.config import settings
from ai_orchestrator.entities import RateLimitDecision, RateLimitRecord, Tier
from ai_orchestrator.exceptions import StoreUnavailableError
from ai_orchestrator.logger import get_logger
from ai_orchestrator.protocols import RateLimitStore, SubscriptionLookup

logger = get_logger(__name__)

HOUR_SECONDS = 3600
DAY_SECONDS = 86400


def _retry_after(record: RateLimitRecord, now: float) -> int:
    """Whole seconds until the record's window resets, at least 1."""
    return max(1, math.ceil(record.resets_at - now))


def _decide(
    store: RateLimitStore,
    identity: str,
    limit: int,
    window_seconds: float,
    now: float,
    window_start: float | None = None,
) -> RateLimitDecision:
    try:
        allowed, record = store.increment(identity, limit, window_seconds, now, window_start)
    except StoreUnavailableError as e:
        logger.error(
            "Rate limit store unavailable, failing open",
            extra={"identity": identity, "error": str(e)},
        )
        return RateLimitDecision(allowed=True, remaining=limit, limit=limit, fail_open=True)

    if not allowed:
        retry_after = _retry_after(record, now)
        logger.warning(
            "Rate limit exceeded",
            extra={"identity": identity, "limit": limit, "retry_after": retry_after},
        )
        return RateLimitDecision(allowed=False, remaining=0, limit=limit, retry_after=retry_after)

    return RateLimitDecision(allowed=True, remaining=max(0, limit - record.count), limit=limit)


class IpRateLimiter:
    """Fixed window per IP, starting at the first request of each window."""

    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int | None = None,
        window_ms: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._max_requests = max_requests or settings.ip_rate_limit_max
        self._window_ms = window_ms or settings.ip_rate_limit_window_ms
        self._clock = clock

    def check(
        self,
        ip: str,
        max_requests: int | None = None,
        window_ms: int | None = None,
    ) -> RateLimitDecision:
        """Count one request from ``ip``.

        Args:
            ip: Client IP address
            max_requests: Override the configured requests per window
            window_ms: Override the configured window length

        Returns:
            RateLimitDecision; ``retry_after`` is set when rejected
        """
        limit = max_requests or self._max_requests
        window_seconds = (window_ms or self._window_ms) / 1000
        return _decide(self._store, f"ip:{ip}", limit, window_seconds, self._clock())


class BucketRateLimiter:
    """Calendar-aligned bucket limiter (hour, day, ...)."""

    def __init__(
        self,
        store: RateLimitStore,
        bucket_seconds: int,
        prefix: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._bucket_seconds = bucket_seconds
        self._prefix = prefix
        self._clock = clock

    def bucket_start(self, now: float) -> float:
        return float(math.floor(now / self._bucket_seconds) * self._bucket_seconds)

    def check(self, identity: str, limit: int) -> RateLimitDecision:
        now = self._clock()
        start = self.bucket_start(now)
        key = f"{self._prefix}:{identity}:{int(start)}"
        return _decide(self._store, key, limit, self._bucket_seconds, now, window_start=start)


class TieredRateLimiter:
    """Hourly per-user quota that depends on the user's subscription tier."""

    def __init__(
        self,
        store: RateLimitStore,
        subscriptions: SubscriptionLookup,
        tier_limits: dict[str, int] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._subscriptions = subscriptions
        self._tier_limits = tier_limits or settings.tier_limits
        self._buckets = BucketRateLimiter(store, HOUR_SECONDS, prefix="user", clock=clock)

    def resolve_tier(self, user_id: str) -> Tier:
        """Resolve the user's tier; any lookup failure means free."""
        try:
            return self._subscriptions.get_tier(user_id)
        except Exception as e:  # the lookup is an opaque collaborator
            logger.warning(
                "Subscription lookup failed, using free tier",
                extra={"user_id": user_id, "error": str(e)},
            )
            return Tier.FREE

    def check(self, user_id: str) -> tuple[Tier, RateLimitDecision]:
        tier = self.resolve_tier(user_id)
        limit = self._tier_limits.get(tier.value, self._tier_limits[Tier.FREE.value])
        return tier, self._buckets.check(user_id, limit)


class AnonymousDailyQuota:
    """Per-IP daily allowance for callers without an account.

    A limit of 0 disables the quota.
    """

    def __init__(
        self,
        store: RateLimitStore,
        daily_limit: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limit = settings.anonymous_daily_limit if daily_limit is None else daily_limit
        self._buckets = BucketRateLimiter(store, DAY_SECONDS, prefix="anon_daily", clock=clock)

    @property
    def enabled(self) -> bool:
        return self._limit > 0

    def check(self, ip: str) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(allowed=True, remaining=0, limit=0)
        return self._buckets.check(ip, self._limit)
