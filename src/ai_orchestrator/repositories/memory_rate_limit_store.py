"""In-process implementation of RateLimitStore.

Counters persist across warm invocations of the same process and start
empty on a cold start. Check-and-increment runs under a single lock, so
concurrent requests for the same identity can never overshoot a limit.
"""

import threading
from dataclasses import replace

from ai_orchestrator.entities import RateLimitRecord


class InMemoryRateLimitStore:
    """Lock-guarded counter map with a lazy periodic sweep.

    This class satisfies the RateLimitStore protocol through structural
    typing - no explicit inheritance needed.
    """

    def __init__(self, sweep_interval: float = 60.0) -> None:
        """Initialize the store.

        Args:
            sweep_interval: Minimum seconds between purges of ended windows.
                The purge piggybacks on ``increment`` calls.
        """
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._last_sweep: float | None = None

    def increment(
        self,
        identity: str,
        limit: int,
        window_seconds: float,
        now: float,
        window_start: float | None = None,
    ) -> tuple[bool, RateLimitRecord]:
        with self._lock:
            self._maybe_sweep(now)

            record = self._records.get(identity)
            if record is None or now >= record.resets_at:
                record = RateLimitRecord(
                    identity=identity,
                    window_start=now if window_start is None else window_start,
                    count=1,
                    window_seconds=window_seconds,
                )
                self._records[identity] = record
                return True, record

            if record.count >= limit:
                return False, record

            record = replace(record, count=record.count + 1)
            self._records[identity] = record
            return True, record

    def _maybe_sweep(self, now: float) -> None:
        if self._last_sweep is None:
            self._last_sweep = now
            return
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        self._purge(now)

    def _purge(self, now: float) -> int:
        ended = [key for key, record in self._records.items() if now >= record.resets_at]
        for key in ended:
            del self._records[key]
        return len(ended)

    def sweep(self, now: float) -> int:
        with self._lock:
            self._last_sweep = now
            return self._purge(now)

    def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
