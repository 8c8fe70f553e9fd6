"""SubscriptionLookup implementation backed by an in-process map.

Billing lives outside this service; whatever syncs subscriptions (webhook
handler, admin job) pushes ``(status, product_id)`` pairs in through
``set_subscription`` and the limiter reads tiers back out.
"""

import threading

from ai_orchestrator.entities import Tier


def tier_for_subscription(
    status: str | None,
    product_id: str | None,
    basic_product_ids: tuple[str, ...] = (),
    pro_product_ids: tuple[str, ...] = (),
) -> Tier:
    """Map a subscription to a tier. Only active subscriptions count."""
    if status != "active" or not product_id:
        return Tier.FREE
    if product_id in pro_product_ids:
        return Tier.PRO
    if product_id in basic_product_ids:
        return Tier.BASIC
    return Tier.FREE


class InMemorySubscriptionLookup:
    """Resolves tiers from subscriptions registered at runtime."""

    def __init__(
        self,
        basic_product_ids: tuple[str, ...] = (),
        pro_product_ids: tuple[str, ...] = (),
    ) -> None:
        self._basic = tuple(basic_product_ids)
        self._pro = tuple(pro_product_ids)
        self._tiers: dict[str, Tier] = {}
        self._lock = threading.Lock()

    def set_subscription(self, user_id: str, status: str | None, product_id: str | None) -> Tier:
        tier = tier_for_subscription(status, product_id, self._basic, self._pro)
        with self._lock:
            self._tiers[user_id] = tier
        return tier

    def get_tier(self, user_id: str) -> Tier:
        with self._lock:
            return self._tiers.get(user_id, Tier.FREE)
