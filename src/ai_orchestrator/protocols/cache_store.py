"""Cache storage protocol.

Defines the interface for any durable or in-process store that holds
provider responses addressed by a content-derived key.

Implementations:
- In-process dictionary guarded by a lock (default, per-process)
- Redis hashes (shared across instances)
"""

from typing import Protocol, runtime_checkable

from ai_orchestrator.entities import CacheEntryEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for response cache backends.

    Backends report connectivity problems by raising
    ``StoreUnavailableError`` and undecodable records by raising
    ``CorruptEntryError``; the cache service turns both into misses.
    """

    def get(self, key: str) -> CacheEntryEntity | None:
        """Fetch an entry by key, expired or not.

        Args:
            key: The cache key

        Returns:
            The stored entry, or None if absent
        """
        ...

    def put(self, entry: CacheEntryEntity) -> None:
        """Insert or replace an entry.

        Args:
            entry: The entry to store
        """
        ...

    def touch(self, key: str, accessed_at: float) -> None:
        """Increment the hit count and update the last-access time.

        Args:
            key: The cache key
            accessed_at: Access timestamp (Unix seconds)
        """
        ...

    def delete_by_key(self, key: str) -> bool:
        """Delete a specific entry by key.

        Returns:
            True if deleted, False otherwise
        """
        ...

    def delete_expired(self, now: float) -> int:
        """Physically remove entries whose expiry has passed.

        Returns:
            Number of entries deleted
        """
        ...

    def invalidate_by_prompt(self, template_id: str, version: str | None = None) -> int:
        """Delete entries produced by a prompt template (optionally one version).

        Returns:
            Number of entries deleted
        """
        ...

    def invalidate_by_model(self, model: str) -> int:
        """Delete entries produced by a model.

        Returns:
            Number of entries deleted
        """
        ...

    def clear_all(self) -> int:
        """Clear all entries from the cache.

        Returns:
            Number of entries deleted
        """
        ...

    def count_all(self) -> int:
        """Count stored entries (including logically expired ones)."""
        ...

    def health_check(self) -> bool:
        """Check if the store is accessible."""
        ...

    def get_stats(self) -> dict:
        """Get store statistics (implementation-specific)."""
        ...
