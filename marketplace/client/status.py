from typing import Callable, FrozenSet, Optional, Set, Union

from marketplace.domain.normalizer import CanonicalOrder
from marketplace.domain.status import POLICY, Actor, OrderStatus, TransitionPolicy, coerce_status, next_status
from shared.core import get_logger
from .api_client import MarketplaceAPI
from .errors import InvalidTransition, TransitionInProgress

logger = get_logger(__name__)


class OrderStatusController:
    """Drives status changes for one viewer of an order.

    At most one mutation per order is in flight: a request for an order that
    is already updating raises :class:`TransitionInProgress`. Every request
    re-reads the order first and checks the transition against that record,
    never against a status the caller remembered.
    """

    def __init__(self, api: MarketplaceAPI, actor: Actor, policy: TransitionPolicy = POLICY):
        self.api = api
        self.actor = actor
        self.policy = policy
        self._updating: Set[str] = set()

    def is_updating(self, order_id) -> bool:
        return str(order_id) in self._updating

    def available_transitions(self, order: CanonicalOrder) -> FrozenSet[OrderStatus]:
        """Targets to offer as actions for ``order``; none while it is updating."""
        if self.is_updating(order.id):
            return frozenset()
        return self.policy.allowed_targets(self.actor, order.parties(), order.status)

    async def load(self, order_id) -> CanonicalOrder:
        raw = await self.api.get_order(order_id)
        return CanonicalOrder.from_raw(raw, self.api.settings.DEFAULT_COUNTRY)

    async def _mutate(self, order_id, pick_target: Callable[[CanonicalOrder], OrderStatus],
                      reason: Optional[str], use_cancel_endpoint: bool = False) -> CanonicalOrder:
        key = str(order_id)
        if key in self._updating:
            raise TransitionInProgress(order_id)
        self._updating.add(key)
        try:
            latest = await self.load(order_id)
            target = pick_target(latest)
            self.policy.authorize(self.actor, latest.parties(), latest.status, target)
            if use_cancel_endpoint:
                raw = await self.api.cancel_order(order_id, reason or "Cancelled by user")
            else:
                raw = await self.api.update_status(order_id, target.value, reason)
            updated = CanonicalOrder.from_raw(raw, self.api.settings.DEFAULT_COUNTRY)
            logger.info(
                f"Order {updated.order_number} moved from {latest.status.value} to {updated.status.value}",
                extra={'extra_fields': {'order_id': order_id, 'role': self.actor.role.value}}
            )
            return updated
        finally:
            self._updating.discard(key)

    async def request_transition(self, order_id, target: Union[OrderStatus, str],
                                 reason: Optional[str] = None) -> CanonicalOrder:
        target = coerce_status(target)
        return await self._mutate(order_id, lambda latest: target, reason)

    async def advance(self, order_id, reason: Optional[str] = None) -> CanonicalOrder:
        """Move to the next fulfillment step after whatever status is current."""
        def successor(latest: CanonicalOrder) -> OrderStatus:
            target = next_status(latest.status)
            if target is None:
                raise InvalidTransition(latest.status.value, None,
                                        f"Order is already {latest.status.value}; no further changes are possible")
            return target

        return await self._mutate(order_id, successor, reason)

    async def cancel(self, order_id, reason: str = "Cancelled by user") -> CanonicalOrder:
        return await self._mutate(order_id, lambda latest: OrderStatus.CANCELLED, reason, use_cancel_endpoint=True)
