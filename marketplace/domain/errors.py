"""Errors raised by the order domain; shared by the service and the client."""

from typing import Optional


class OrderDomainError(Exception):
    """Base class for order rule violations."""

    code = "order_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:
        return self.message


class InvalidTransition(OrderDomainError):
    """The requested status is not reachable from the current status."""

    code = "invalid_transition"

    def __init__(self, current: Optional[str], target: Optional[str], message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Invalid status transition from {current} to {target}")


class TransitionForbidden(OrderDomainError):
    """The actor's role or relationship to the order does not grant the transition."""

    code = "transition_forbidden"

    def __init__(self, role: str, current: str, target: str):
        self.role = role
        self.current = current
        self.target = target
        super().__init__(f"A {role} may not move this order from {current} to {target}")
