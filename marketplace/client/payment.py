"""Client side of the payment step.

The business await (``PaymentSimulator.simulate``) and the presentation
pacing (``PhasePacer``) are separate: the pacer only holds a phase on screen
after the verdict is known, and tests construct it disabled.
"""

import asyncio
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from marketplace.domain.status import PaymentMethod
from shared.core import get_logger
from .api_client import MarketplaceAPI
from .config import ClientSettings
from .errors import InvalidPaymentDetails, MarketplaceError, UnsupportedPaymentMethod

logger = get_logger(__name__)

CARD_NUMBER_RE = re.compile(r"^[0-9]{13,19}$")
EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/([0-9]{2})$")
CVV_RE = re.compile(r"^[0-9]{3,4}$")
UPI_RE = re.compile(r"^[a-zA-Z0-9.\-_]{2,49}@[a-zA-Z]{2,}$")


class PaymentPhase(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class PaymentAttempt:
    order_id: Any
    method: PaymentMethod
    success: bool
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    order: Optional[Dict[str, Any]] = None

    @property
    def phase(self) -> PaymentPhase:
        return PaymentPhase.SUCCESS if self.success else PaymentPhase.FAILED


def _card_expired(month: int, year: int, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return (2000 + year, month) < (today.year, today.month)


def validate_payment_details(method: Union[PaymentMethod, str], details: Optional[Mapping[str, Any]],
                             today: Optional[date] = None) -> Dict[str, Any]:
    """Check method-specific details and return the cleaned body to send."""
    try:
        method = PaymentMethod(method)
    except ValueError:
        raise UnsupportedPaymentMethod(method) from None
    details = dict(details or {})

    if method == PaymentMethod.CARD:
        number = re.sub(r"[\s-]", "", str(details.get("cardNumber") or ""))
        if not number:
            raise InvalidPaymentDetails("Card number is required")
        if not CARD_NUMBER_RE.match(number):
            raise InvalidPaymentDetails("Invalid card number")
        expiry = str(details.get("expiryDate") or "").strip()
        match = EXPIRY_RE.match(expiry)
        if not match:
            raise InvalidPaymentDetails("Invalid expiry date (MM/YY)")
        if _card_expired(int(match.group(1)), int(match.group(2)), today):
            raise InvalidPaymentDetails("Card has expired")
        if not CVV_RE.match(str(details.get("cvv") or "")):
            raise InvalidPaymentDetails("Invalid CVV")
        name = str(details.get("nameOnCard") or "").strip()
        if not name:
            raise InvalidPaymentDetails("Name on card is required")
        return {"cardNumber": number, "expiryDate": expiry, "cvv": str(details["cvv"]), "nameOnCard": name}

    if method == PaymentMethod.UPI:
        upi_id = str(details.get("upiId") or "").strip()
        if not upi_id:
            raise InvalidPaymentDetails("UPI ID is required")
        if not UPI_RE.match(upi_id):
            raise InvalidPaymentDetails("Invalid UPI ID format")
        return {"upiId": upi_id}

    return {}


class PhasePacer:
    """Minimum on-screen duration for each payment phase."""

    def __init__(self, success_seconds: float = 2.0, failure_seconds: float = 3.0, enabled: bool = True,
                 sleep: Callable = asyncio.sleep):
        self.success_seconds = success_seconds
        self.failure_seconds = failure_seconds
        self.enabled = enabled
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "PhasePacer":
        return cls(
            success_seconds=settings.SUCCESS_DISPLAY_SECONDS,
            failure_seconds=settings.FAILURE_DISPLAY_SECONDS,
            enabled=settings.PACING_ENABLED,
        )

    def duration(self, phase: PaymentPhase) -> float:
        if phase == PaymentPhase.SUCCESS:
            return self.success_seconds
        if phase == PaymentPhase.FAILED:
            return self.failure_seconds
        return 0.0

    async def hold(self, phase: PaymentPhase):
        seconds = self.duration(phase)
        if self.enabled and seconds > 0:
            await self._sleep(seconds)


class PaymentSimulator:
    def __init__(self, api: MarketplaceAPI):
        self.api = api

    async def simulate(self, order_id, method: Union[PaymentMethod, str],
                       details: Optional[Mapping[str, Any]] = None) -> PaymentAttempt:
        """One charge attempt; every failure comes back as an unsuccessful attempt."""
        method = PaymentMethod(method)
        if method == PaymentMethod.CASH:
            raise UnsupportedPaymentMethod(f"{method.value} (collected on delivery)")
        try:
            body = await self.api.simulate_payment(order_id, method.value, dict(details or {}))
        except MarketplaceError as e:
            logger.warning(
                f"Payment for order {order_id} did not complete",
                extra={'extra_fields': {'method': method.value, 'error': e.code}}
            )
            return PaymentAttempt(order_id=order_id, method=method, success=False, error_message=e.user_message)

        body = body or {}
        success = bool(body.get("success"))
        attempt = PaymentAttempt(
            order_id=order_id,
            method=method,
            success=success,
            transaction_id=body.get("transactionId") if success else None,
            error_message=None if success else body.get("message") or "Payment failed",
            order=body.get("order"),
        )
        logger.info(
            f"Payment for order {order_id} {'approved' if success else 'declined'}",
            extra={'extra_fields': {'method': method.value, 'transaction_id': attempt.transaction_id}}
        )
        return attempt
