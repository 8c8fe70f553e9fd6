"""Redis implementation of RateLimitStore for multi-instance deployments."""

import redis

from ai_orchestrator.config import get_redis_client
from ai_orchestrator.entities import RateLimitRecord
from ai_orchestrator.repositories.redis_errors import translate_redis_errors

# KEYS[1] counter hash; ARGV: now, limit, window_seconds, window_start
# Returns {allowed, count, window_start}
_INCREMENT_SCRIPT = """
local now = tonumber(ARGV[1])
local limit = tonumber(ARGV[2])
local window = tonumber(ARGV[3])
local data = redis.call('HMGET', KEYS[1], 'count', 'window_start')
local count = tonumber(data[1])
local started = tonumber(data[2])
if count == nil or started == nil or now >= started + window then
    local fresh = tonumber(ARGV[4])
    redis.call('HSET', KEYS[1], 'count', 1, 'window_start', ARGV[4])
    redis.call('PEXPIREAT', KEYS[1], math.ceil((fresh + window) * 1000))
    return {1, 1, ARGV[4]}
end
if count >= limit then
    return {0, count, data[2]}
end
count = redis.call('HINCRBY', KEYS[1], 'count', 1)
return {1, count, data[2]}
"""

STORE_NAME = "rate_limit"


class RedisRateLimitStore:
    """Counter hashes updated by a Lua script, so check-and-increment is atomic.

    This class satisfies the RateLimitStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, redis_client: redis.Redis | None = None, key_prefix: str = "ratelimit") -> None:
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix
        self._increment = self._client.register_script(_INCREMENT_SCRIPT)

    @classmethod
    def create(cls, redis_client: redis.Redis | None = None) -> "RedisRateLimitStore":
        """Factory method to create RedisRateLimitStore with defaults."""
        return cls(redis_client=redis_client)

    def increment(
        self,
        identity: str,
        limit: int,
        window_seconds: float,
        now: float,
        window_start: float | None = None,
    ) -> tuple[bool, RateLimitRecord]:
        start = now if window_start is None else window_start
        with translate_redis_errors(STORE_NAME, "increment"):
            allowed, count, started = self._increment(
                keys=[f"{self._prefix}:{identity}"],
                args=[repr(now), limit, repr(window_seconds), repr(start)],
            )
        record = RateLimitRecord(
            identity=identity,
            window_start=float(started),
            count=int(count),
            window_seconds=window_seconds,
        )
        return bool(int(allowed)), record

    def sweep(self, now: float) -> int:
        # Counter hashes carry PEXPIREAT, Redis removes them itself
        return 0

    def health_check(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
