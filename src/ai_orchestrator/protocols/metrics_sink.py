"""Usage metrics sink protocol."""

from typing import Protocol, runtime_checkable

from ai_orchestrator.entities import UsageRecord


@runtime_checkable
class MetricsSink(Protocol):
    """Append-only destination for usage / cost records."""

    def record(self, usage: UsageRecord) -> None:
        """Append one record. May raise ``StoreUnavailableError``."""
        ...

    def recent(self, limit: int = 1000) -> list[UsageRecord]:
        """Return up to ``limit`` most recent records, newest first."""
        ...
