"""Async checkout and order-management client."""

from .api_client import FALLBACK_PAYMENT_METHODS, MarketplaceAPI
from .assembler import DeliveryAddress, OrderAssembler, OrderDraft
from .cart import Cart, CartClosed, CartLine
from .checkout import CheckoutFlow, CheckoutResult
from .config import ClientSettings, get_client_settings
from .errors import MarketplaceError
from .payment import PaymentAttempt, PaymentPhase, PaymentSimulator, PhasePacer, validate_payment_details
from .status import OrderStatusController

__all__ = [
    "FALLBACK_PAYMENT_METHODS",
    "MarketplaceAPI",
    "DeliveryAddress",
    "OrderAssembler",
    "OrderDraft",
    "Cart",
    "CartClosed",
    "CartLine",
    "CheckoutFlow",
    "CheckoutResult",
    "ClientSettings",
    "get_client_settings",
    "MarketplaceError",
    "PaymentAttempt",
    "PaymentPhase",
    "PaymentSimulator",
    "PhasePacer",
    "validate_payment_details",
    "OrderStatusController",
]
