"""Failures the checkout and order-detail flows recover from.

Every class carries a ``user_message`` that can be shown as-is. Transition
rule violations reuse the domain classes so a local policy check and a
server rejection raise the same type.
"""

from typing import Iterable, Optional

from marketplace.domain.errors import InvalidTransition, OrderDomainError as MarketplaceError, TransitionForbidden


class OrderCreationError(MarketplaceError):
    """Base for failures detected while assembling an order."""


class EmptyCart(OrderCreationError):
    code = "empty_cart"

    def __init__(self, message: str = "Your cart is empty"):
        super().__init__(message)


class InvalidAddress(OrderCreationError):
    code = "invalid_address"

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Please fill in the delivery address: {', '.join(self.missing)}")


class UnsupportedPaymentMethod(OrderCreationError):
    code = "unsupported_payment_method"

    def __init__(self, method):
        self.method = method
        super().__init__(f"Unsupported payment method: {method}")


class InvalidPaymentDetails(MarketplaceError):
    code = "invalid_payment_details"


class ValidationFailed(OrderCreationError):
    """The server rejected the request body (400/422)."""

    code = "validation_failed"

    def __init__(self, message: str, status_code: int = 422, errors: Optional[list] = None):
        self.status_code = status_code
        self.errors = errors or []
        super().__init__(message)


class TransportError(MarketplaceError):
    """No HTTP response was received."""

    code = "transport_error"
    default_message = "Cannot reach the server. Please check your connection."

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(self.default_message)


class RequestTimeout(TransportError):
    code = "timeout"
    default_message = "The request timed out. Please try again."


class TransitionInProgress(MarketplaceError):
    code = "transition_in_progress"

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__("This order is already being updated. Please wait.")


class ConcurrentModification(MarketplaceError):
    code = "concurrent_modification"


class NotFound(MarketplaceError):
    code = "not_found"


class Forbidden(MarketplaceError):
    code = "forbidden"


class ServerError(MarketplaceError):
    code = "server_error"

    def __init__(self, message: str = "Something went wrong on our side. Please try again later.",
                 status_code: int = 500):
        self.status_code = status_code
        super().__init__(message)


__all__ = [
    "MarketplaceError",
    "OrderCreationError",
    "EmptyCart",
    "InvalidAddress",
    "UnsupportedPaymentMethod",
    "InvalidPaymentDetails",
    "ValidationFailed",
    "TransportError",
    "RequestTimeout",
    "InvalidTransition",
    "TransitionForbidden",
    "TransitionInProgress",
    "ConcurrentModification",
    "NotFound",
    "Forbidden",
    "ServerError",
]
