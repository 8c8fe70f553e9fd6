"""Rate-limit domain entities."""

from dataclasses import dataclass
from enum import Enum


class Tier(str, Enum):
    """Subscription tiers with distinct hourly quotas."""

    FREE = "free"
    BASIC = "basic"
    PRO = "pro"


@dataclass(frozen=True)
class RateLimitRecord:
    """Counter state for one identity within one window."""

    identity: str
    window_start: float
    count: int
    window_seconds: float

    @property
    def resets_at(self) -> float:
        return self.window_start + self.window_seconds


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check.

    ``retry_after`` is whole seconds until the window resets and is only set
    when the request was rejected. ``fail_open`` marks decisions made while
    the counter store was unreachable.
    """

    allowed: bool
    remaining: int
    limit: int
    retry_after: int | None = None
    fail_open: bool = False
