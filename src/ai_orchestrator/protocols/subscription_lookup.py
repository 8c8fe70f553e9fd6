"""Subscription tier lookup protocol."""

from typing import Protocol, runtime_checkable

from ai_orchestrator.entities import Tier


@runtime_checkable
class SubscriptionLookup(Protocol):
    """Resolves the subscription tier of an authenticated user."""

    def get_tier(self, user_id: str) -> Tier:
        """Return the user's tier (``Tier.FREE`` when unknown)."""
        ...
