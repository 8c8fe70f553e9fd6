"""MetricsSink implementations: bounded in-process buffer and Redis list."""

import json
import threading
from collections import deque

import redis

from ai_orchestrator.config import get_redis_client
from ai_orchestrator.entities import UsageRecord
from ai_orchestrator.logger import get_logger
from ai_orchestrator.repositories.redis_errors import translate_redis_errors

logger = get_logger(__name__)

DEFAULT_MAX_RECORDS = 10_000


class InMemoryMetricsSink:
    """Keeps the most recent usage records in a bounded deque."""

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        self._records: deque[UsageRecord] = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def record(self, usage: UsageRecord) -> None:
        with self._lock:
            self._records.append(usage)

    def recent(self, limit: int = 1000) -> list[UsageRecord]:
        with self._lock:
            return list(reversed(self._records))[:limit]


class RedisMetricsSink:
    """Pushes JSON usage records onto a capped Redis list."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        list_key: str = "ai_usage_metrics",
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> None:
        self._client = redis_client or get_redis_client()
        self._list_key = list_key
        self._max_records = max_records

    def record(self, usage: UsageRecord) -> None:
        with translate_redis_errors("metrics", "record"):
            pipe = self._client.pipeline()
            pipe.lpush(self._list_key, json.dumps(usage.to_dict()))
            pipe.ltrim(self._list_key, 0, self._max_records - 1)
            pipe.execute()

    def recent(self, limit: int = 1000) -> list[UsageRecord]:
        """Newest records first. Rows that no longer decode are skipped."""
        with translate_redis_errors("metrics", "recent"):
            rows = self._client.lrange(self._list_key, 0, limit - 1)
        records = []
        for row in rows:
            try:
                records.append(UsageRecord(**json.loads(row)))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping undecodable usage record", extra={"error": str(e)})
        return records
