"""Usage / cost record entity."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class UsageRecord:
    """One provider call or cache hit, with an estimated cost in USD."""

    timestamp: float
    provider: str
    model: str
    operation: str
    latency_ms: int
    cache_hit: bool
    estimated_cost_usd: float
    tokens_used: int | None = None
    cache_key_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
