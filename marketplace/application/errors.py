"""Application-level failures and the HTTP status each maps to."""

from marketplace.domain.errors import OrderDomainError


class ServiceError(OrderDomainError):
    status_code = 400


class OrderNotFound(ServiceError):
    code = "not_found"
    status_code = 404

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found")


class OrderAccessDenied(ServiceError):
    code = "forbidden"
    status_code = 403


class ConcurrentModification(ServiceError):
    code = "concurrent_modification"
    status_code = 409

    def __init__(self, order_id):
        super().__init__(f"Order {order_id} was modified by another request; reload it and try again")


class PaymentNotAllowed(ServiceError):
    code = "payment_not_allowed"
    status_code = 409
