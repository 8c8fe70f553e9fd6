"""In-process implementation of CacheStore.

State lives only as long as the process: a warm worker keeps its entries,
a cold start begins empty. Use the Redis repository when several instances
must share a cache.
"""

import threading
from dataclasses import replace

from ai_orchestrator.entities import CacheEntryEntity


class InMemoryCacheRepository:
    """Lock-guarded dictionary of cache entries.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntryEntity] = {}
        self._lock = threading.Lock()

    @classmethod
    def create(cls) -> "InMemoryCacheRepository":
        """Factory method, for symmetry with the Redis repository."""
        return cls()

    def get(self, key: str) -> CacheEntryEntity | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, entry: CacheEntryEntity) -> None:
        with self._lock:
            self._entries[entry.key] = entry

    def touch(self, key: str, accessed_at: float) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries[key] = replace(
                    entry,
                    hit_count=entry.hit_count + 1,
                    last_accessed_at=accessed_at,
                )

    def delete_by_key(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def _delete_where(self, predicate) -> int:
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if predicate(entry)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def delete_expired(self, now: float) -> int:
        return self._delete_where(lambda entry: entry.is_expired(now))

    def invalidate_by_prompt(self, template_id: str, version: str | None = None) -> int:
        return self._delete_where(
            lambda entry: entry.prompt_template_id == template_id
            and (version is None or entry.prompt_version == version)
        )

    def invalidate_by_model(self, model: str) -> int:
        return self._delete_where(lambda entry: entry.model == model)

    def clear_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def count_all(self) -> int:
        with self._lock:
            return len(self._entries)

    def health_check(self) -> bool:
        return True

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "backend": "memory",
                "total_entries": len(self._entries),
                "total_hits": sum(entry.hit_count for entry in self._entries.values()),
            }
