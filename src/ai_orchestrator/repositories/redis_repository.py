"""Redis implementation of CacheStore.

Each entry is a Redis hash under ``{prefix}:{cache_key}``. Redis expires
the hash at the entry's ``expires_at``, which gives background deletion
for free; the cache service still checks ``expires_at`` on every read.
"""

import json
import time
from typing import Any

import redis

from ai_orchestrator.config import get_redis_client, settings
from ai_orchestrator.entities import CacheEntryEntity
from ai_orchestrator.exceptions import CorruptEntryError
from ai_orchestrator.repositories.redis_errors import translate_redis_errors

# Bump only if the hash still exists, so a late touch never resurrects a
# deleted entry as a stub.
_TOUCH_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    redis.call('HINCRBY', KEYS[1], 'hit_count', 1)
    redis.call('HSET', KEYS[1], 'last_accessed_at', ARGV[1])
    return 1
end
return 0
"""

STORE_NAME = "cache"


def _optional_int(value: str | None) -> int | None:
    return int(value) if value not in (None, "") else None


def _optional_float(value: str | None) -> float | None:
    return float(value) if value not in (None, "") else None


def _expired(value: str, now: float) -> bool:
    """Unparseable expiry stamps count as expired so the sweep drops them."""
    try:
        return float(value) <= now
    except ValueError:
        return True


class RedisCacheRepository:
    """Redis hash-per-entry cache store.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Redis client instance. If None, creates default.
                Must be created with ``decode_responses=True``.
            key_prefix: Namespace for entry keys. Defaults to settings.
        """
        self._client = redis_client or get_redis_client()
        self._prefix = key_prefix or settings.cache_key_prefix
        self._touch = self._client.register_script(_TOUCH_SCRIPT)

    @classmethod
    def create(
        cls,
        redis_client: redis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> "RedisCacheRepository":
        """Factory method to create RedisCacheRepository with defaults."""
        return cls(redis_client=redis_client, key_prefix=key_prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _scan(self):
        return self._client.scan_iter(match=f"{self._prefix}:*")

    @staticmethod
    def _serialize(entry: CacheEntryEntity) -> dict[str, str]:
        return {
            "key": entry.key,
            "response_data": json.dumps(entry.response_data),
            "provider": entry.provider,
            "model": entry.model,
            "latency_ms": str(entry.latency_ms),
            "created_at": str(entry.created_at),
            "expires_at": str(entry.expires_at),
            "hit_count": str(entry.hit_count),
            "last_accessed_at": "" if entry.last_accessed_at is None else str(entry.last_accessed_at),
            "tokens_used": "" if entry.tokens_used is None else str(entry.tokens_used),
            "prompt_template_id": entry.prompt_template_id or "",
            "prompt_version": entry.prompt_version or "",
        }

    @staticmethod
    def _deserialize(data: dict[str, Any]) -> CacheEntryEntity:
        return CacheEntryEntity(
            key=data["key"],
            response_data=json.loads(data["response_data"]),
            provider=data["provider"],
            model=data["model"],
            latency_ms=int(data["latency_ms"]),
            created_at=float(data["created_at"]),
            expires_at=float(data["expires_at"]),
            hit_count=int(data.get("hit_count") or 0),
            last_accessed_at=_optional_float(data.get("last_accessed_at")),
            tokens_used=_optional_int(data.get("tokens_used")),
            prompt_template_id=data.get("prompt_template_id") or None,
            prompt_version=data.get("prompt_version") or None,
        )

    def get(self, key: str) -> CacheEntryEntity | None:
        with translate_redis_errors(STORE_NAME, "get"):
            data = self._client.hgetall(self._key(key))
        if not data:
            return None
        try:
            return self._deserialize(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptEntryError(STORE_NAME, key, e) from e

    def put(self, entry: CacheEntryEntity) -> None:
        redis_key = self._key(entry.key)
        with translate_redis_errors(STORE_NAME, "put"):
            pipe = self._client.pipeline()
            pipe.delete(redis_key)
            pipe.hset(redis_key, mapping=self._serialize(entry))
            pipe.expireat(redis_key, int(entry.expires_at) + 1)
            pipe.execute()

    def touch(self, key: str, accessed_at: float) -> None:
        with translate_redis_errors(STORE_NAME, "touch"):
            self._touch(keys=[self._key(key)], args=[str(accessed_at)])

    def delete_by_key(self, key: str) -> bool:
        with translate_redis_errors(STORE_NAME, "delete_by_key"):
            result: int = self._client.delete(self._key(key))  # type: ignore[assignment]
        return result > 0

    def _delete_matching(self, operation: str, fields: list[str], predicate) -> int:
        count = 0
        with translate_redis_errors(STORE_NAME, operation):
            for redis_key in self._scan():
                values = self._client.hmget(redis_key, fields)
                if predicate(dict(zip(fields, values))) and self._client.delete(redis_key):
                    count += 1
        return count

    def delete_expired(self, now: float) -> int:
        return self._delete_matching(
            "delete_expired",
            ["expires_at"],
            lambda row: row["expires_at"] is not None and _expired(row["expires_at"], now),
        )

    def invalidate_by_prompt(self, template_id: str, version: str | None = None) -> int:
        return self._delete_matching(
            "invalidate_by_prompt",
            ["prompt_template_id", "prompt_version"],
            lambda row: row["prompt_template_id"] == template_id
            and (version is None or row["prompt_version"] == version),
        )

    def invalidate_by_model(self, model: str) -> int:
        return self._delete_matching(
            "invalidate_by_model",
            ["model"],
            lambda row: row["model"] == model,
        )

    def clear_all(self) -> int:
        count = 0
        with translate_redis_errors(STORE_NAME, "clear_all"):
            for redis_key in self._scan():
                if self._client.delete(redis_key):
                    count += 1
        return count

    def count_all(self) -> int:
        with translate_redis_errors(STORE_NAME, "count_all"):
            return sum(1 for _ in self._scan())

    def health_check(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def get_stats(self) -> dict:
        return {
            "backend": "redis",
            "key_prefix": self._prefix,
            "total_entries": self.count_all(),
            "checked_at": time.time(),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
