"""Fulfillment status state machine and the role permission table.

The same :data:`POLICY` object decides which actions the client offers and
which transitions the order service accepts.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Union

from .errors import InvalidTransition, TransitionForbidden


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"
    CASH = "cash"


class Role(str, Enum):
    CONSUMER = "consumer"
    FARMER = "farmer"
    ADMIN = "admin"


FULFILLMENT_CHAIN = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
)
CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
})
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
})

StatusLike = Union[OrderStatus, str]


def coerce_status(value: StatusLike) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(None, str(value), f"Unknown order status: {value}") from None


def next_status(current: StatusLike) -> Optional[OrderStatus]:
    """The immediate successor on the fulfillment chain, if any."""
    current = coerce_status(current)
    if current == OrderStatus.CANCELLED or current == FULFILLMENT_CHAIN[-1]:
        return None
    return FULFILLMENT_CHAIN[FULFILLMENT_CHAIN.index(current) + 1]


def structural_targets(current: StatusLike) -> FrozenSet[OrderStatus]:
    current = coerce_status(current)
    targets = set()
    successor = next_status(current)
    if successor is not None:
        targets.add(successor)
    if current in CANCELLABLE_STATUSES:
        targets.add(OrderStatus.CANCELLED)
    return frozenset(targets)


def apply_transition(current: StatusLike, target: StatusLike) -> OrderStatus:
    """Validate a transition ignoring who asks for it; returns the new status."""
    current = coerce_status(current)
    target = coerce_status(target)
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(current.value, target.value,
                                f"Order is already {current.value}; no further changes are possible")
    if target not in structural_targets(current):
        raise InvalidTransition(current.value, target.value)
    return target


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "role", Role(self.role))


@dataclass(frozen=True)
class OrderParties:
    """Who is attached to an order: its consumer and the farmers of its items."""

    consumer_id: Optional[str]
    farmer_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, consumer_id, farmer_ids: Iterable) -> "OrderParties":
        return cls(
            consumer_id=str(consumer_id) if consumer_id is not None else None,
            farmer_ids=frozenset(str(f) for f in farmer_ids if f is not None),
        )

    def involves(self, actor: Actor) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.CONSUMER:
            return actor.id == self.consumer_id
        return actor.id in self.farmer_ids


_SELLER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
}

# (role, fromStatus) -> allowed target statuses. Consumer and farmer rows only
# apply to parties of the order; admin rows apply to any order.
TRANSITION_PERMISSIONS: Dict[Role, Dict[OrderStatus, FrozenSet[OrderStatus]]] = {
    Role.CONSUMER: {
        OrderStatus.PENDING: frozenset({OrderStatus.CANCELLED}),
    },
    Role.FARMER: dict(_SELLER_TRANSITIONS),
    Role.ADMIN: dict(_SELLER_TRANSITIONS),
}


class TransitionPolicy:
    def __init__(self, permissions: Dict[Role, Dict[OrderStatus, FrozenSet[OrderStatus]]]):
        self.permissions = permissions

    def allowed_targets(self, actor: Actor, parties: OrderParties, current: StatusLike) -> FrozenSet[OrderStatus]:
        """Targets this actor may request right now; drives action rendering."""
        current = coerce_status(current)
        if not parties.involves(actor):
            return frozenset()
        granted = self.permissions.get(actor.role, {}).get(current, frozenset())
        return granted & structural_targets(current)

    def authorize(self, actor: Actor, parties: OrderParties, current: StatusLike, target: StatusLike) -> OrderStatus:
        """Structural check first, then the permission table."""
        new_status = apply_transition(current, target)
        if new_status not in self.allowed_targets(actor, parties, current):
            raise TransitionForbidden(actor.role.value, coerce_status(current).value, new_status.value)
        return new_status


POLICY = TransitionPolicy(TRANSITION_PERMISSIONS)
