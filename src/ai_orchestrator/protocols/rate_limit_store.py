"""Rate-limit counter storage protocol."""

from typing import Protocol, runtime_checkable

from ai_orchestrator.entities import RateLimitRecord


@runtime_checkable
class RateLimitStore(Protocol):
    """Protocol for counter stores with an atomic increment-or-reject.

    The check and the increment must happen as one step per identity so that
    concurrent requests can never push a count past its limit.
    """

    def increment(
        self,
        identity: str,
        limit: int,
        window_seconds: float,
        now: float,
        window_start: float | None = None,
    ) -> tuple[bool, RateLimitRecord]:
        """Count one request against ``identity``.

        If there is no record, or the current record's window has ended, a
        new window begins with count 1. If the count has reached ``limit``
        the request is rejected and the record is left unchanged. Otherwise
        the count is incremented.

        Args:
            identity: Counter key (e.g. "ip:1.2.3.4", "user:42:1700000000")
            limit: Maximum requests per window
            window_seconds: Window length
            now: Current time (Unix seconds)
            window_start: Fixed start for calendar-aligned buckets; when
                None the window starts at the first request

        Returns:
            (allowed, record after the operation)
        """
        ...

    def sweep(self, now: float) -> int:
        """Remove records whose window has ended.

        Returns:
            Number of records removed
        """
        ...

    def health_check(self) -> bool:
        """Check if the store is accessible."""
        ...
