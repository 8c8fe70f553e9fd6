"""Translation of redis-py errors into StoreUnavailableError."""

from collections.abc import Iterator
from contextlib import contextmanager

import redis

from ai_orchestrator.exceptions import StoreUnavailableError


@contextmanager
def translate_redis_errors(store: str, operation: str) -> Iterator[None]:
    """Re-raise any ``redis.RedisError`` as ``StoreUnavailableError``."""
    try:
        yield
    except redis.RedisError as e:
        raise StoreUnavailableError(store, operation, e) from e
