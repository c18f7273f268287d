"""Simulated payment gateway and the payment step of an order.

No money moves: the gateway waits for a randomized processing delay and
approves with a per-method probability.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional, Tuple
import asyncio
import random
import time

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from marketplace.core_settings import get_settings
from marketplace.domain.models import Order, utcnow
from marketplace.domain.normalizer import normalize_order
from marketplace.domain.status import Actor, OrderStatus, PaymentMethod, PaymentStatus, Role
from shared.core import get_logger
from .errors import ConcurrentModification, OrderAccessDenied, PaymentNotAllowed, ServiceError
from .service import OrderService

logger = get_logger(__name__)

DECLINE_MESSAGE = "Payment failed. Please try again or use a different payment method."
SUCCESS_MESSAGE = "Payment processed successfully"

PAYMENT_METHODS = [
    {
        "id": PaymentMethod.CARD.value,
        "name": "Credit/Debit Card",
        "description": "Pay securely with your card",
        "icons": ["visa", "mastercard"],
        "supported": True,
    },
    {
        "id": PaymentMethod.UPI.value,
        "name": "UPI Payment",
        "description": "Google Pay, PhonePe, Paytm",
        "icons": ["upi"],
        "supported": True,
    },
    {
        "id": PaymentMethod.WALLET.value,
        "name": "Digital Wallet",
        "description": "PhonePe, Google Pay, Amazon Pay",
        "icons": ["wallet"],
        "supported": True,
    },
    {
        "id": PaymentMethod.CASH.value,
        "name": "Cash on Delivery",
        "description": "Pay when you receive your order",
        "icons": ["cash"],
        "supported": True,
    },
]


def generate_transaction_id() -> str:
    return f"TXN{int(time.time() * 1000)}{random.randint(0, 999)}"


@dataclass
class GatewayVerdict:
    success: bool
    transaction_id: Optional[str] = None
    message: str = ""


class SimulatedGateway:
    def __init__(
        self,
        success_rates: Dict[PaymentMethod, float],
        delay_range: Tuple[float, float] = (2.0, 4.0),
        rng: Optional[random.Random] = None,
    ):
        self.success_rates = success_rates
        self.delay_range = delay_range
        self.rng = rng or random.Random()

    async def charge(self, order_id: int, method: PaymentMethod, amount) -> GatewayVerdict:
        low, high = self.delay_range
        delay = low + self.rng.random() * max(high - low, 0.0)
        logger.info(
            f"Connecting to payment gateway for order {order_id}",
            extra={'extra_fields': {'method': method.value, 'amount': str(amount), 'delay_s': round(delay, 2)}}
        )
        if delay > 0:
            await asyncio.sleep(delay)

        if self.rng.random() < self.success_rates.get(method, 0.95):
            return GatewayVerdict(success=True, transaction_id=generate_transaction_id(), message=SUCCESS_MESSAGE)
        return GatewayVerdict(success=False, message=DECLINE_MESSAGE)


@lru_cache
def get_payment_gateway() -> SimulatedGateway:
    settings = get_settings()
    return SimulatedGateway(
        success_rates={
            PaymentMethod.CARD: settings.PAYMENT_SUCCESS_RATE_CARD,
            PaymentMethod.UPI: settings.PAYMENT_SUCCESS_RATE_UPI,
            PaymentMethod.WALLET: settings.PAYMENT_SUCCESS_RATE_WALLET,
            PaymentMethod.CASH: 1.0,
        },
        delay_range=(settings.PAYMENT_DELAY_MIN_SECONDS, settings.PAYMENT_DELAY_MAX_SECONDS),
    )


class PaymentService:
    def __init__(self, db: Session, gateway: SimulatedGateway):
        self.db = db
        self.gateway = gateway
        self.orders = OrderService(db)

    @staticmethod
    def _check_payable(order: Order, actor: Actor):
        if actor.role != Role.CONSUMER or order.consumer_id != actor.id:
            raise OrderAccessDenied("Access denied")
        if order.payment_status == PaymentStatus.PAID.value:
            raise PaymentNotAllowed(f"Order {order.order_number} is already paid")
        if order.status != OrderStatus.PENDING.value:
            raise PaymentNotAllowed(f"Order {order.order_number} is {order.status} and can no longer be paid")

    def _payable_order(self, order_id: int, method: PaymentMethod, actor: Actor) -> Order:
        if method == PaymentMethod.CASH:
            raise ServiceError("Cash on delivery orders are paid at delivery; nothing to simulate")
        order = self.orders.get_for(order_id, actor)
        self._check_payable(order, actor)
        return order

    def _record_verdict(self, order_id: int, method: PaymentMethod, actor: Actor, verdict: GatewayVerdict) -> dict:
        # Re-read under lock: the order may have been paid or confirmed while the gateway was busy
        order = self.orders.get_for(order_id, actor, for_update=True)
        self._check_payable(order, actor)

        if verdict.success:
            order.payment_status = PaymentStatus.PAID.value
            order.transaction_id = verdict.transaction_id
            order.payment_failure_reason = None
            if order.paid_at is None:
                order.paid_at = utcnow()
            if order.payment_method != method.value:
                order.payment_method = method.value
        else:
            # A decline leaves the order payable; only the reason is kept
            order.payment_failure_reason = verdict.message

        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentModification(order_id) from None
        self.db.refresh(order)

        logger.info(
            f"Payment simulation for order {order.order_number}: {'approved' if verdict.success else 'declined'}",
            extra={'extra_fields': {'method': method.value, 'transaction_id': verdict.transaction_id}}
        )
        return self.orders.to_raw(order)

    async def simulate(self, order_id: int, method: PaymentMethod, actor: Actor) -> Tuple[dict, GatewayVerdict]:
        """Charge through the gateway; returns the updated order record and the verdict.

        Session work runs in the threadpool so the gateway delay is the only
        thing awaited on the event loop.
        """
        order = await run_in_threadpool(self._payable_order, order_id, method, actor)
        amount = order.total_amount
        verdict = await self.gateway.charge(order_id, method, amount)
        raw = await run_in_threadpool(self._record_verdict, order_id, method, actor, verdict)
        return raw, verdict

    def verify(self, order_id: int, actor: Actor) -> dict:
        order = self.orders.get_for(order_id, actor)
        effective = normalize_order(self.orders.to_raw(order), self.orders.settings.DEFAULT_COUNTRY)
        return {
            "payment_status": effective["paymentStatus"],
            "order_status": effective["status"],
            "payment_method": effective["paymentMethod"],
        }
