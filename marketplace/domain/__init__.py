from .errors import InvalidTransition, OrderDomainError, TransitionForbidden
from .normalizer import CanonicalOrder, normalize_order
from .pricing import OrderTotals, calculate_totals
from .status import (
    POLICY,
    Actor,
    OrderParties,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    Role,
    apply_transition,
    next_status,
)

__all__ = [
    "InvalidTransition",
    "OrderDomainError",
    "TransitionForbidden",
    "CanonicalOrder",
    "normalize_order",
    "OrderTotals",
    "calculate_totals",
    "POLICY",
    "Actor",
    "OrderParties",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Role",
    "apply_transition",
    "next_status",
]
