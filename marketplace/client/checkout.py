"""Checkout pipeline: assemble the order, pay for it, finalize.

Steps run one after another; each awaits its network round trip. Every
client error is caught here and turned into a :class:`CheckoutResult`
carrying a message for the user, so nothing propagates past this boundary.
"""

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from marketplace.domain.normalizer import CanonicalOrder
from marketplace.domain.status import OrderStatus, PaymentMethod, PaymentStatus
from shared.core import get_logger
from .api_client import MarketplaceAPI
from .assembler import DeliveryAddress, OrderAssembler
from .cart import Cart
from .errors import MarketplaceError, UnsupportedPaymentMethod
from .payment import PaymentAttempt, PaymentPhase, PaymentSimulator, PhasePacer, validate_payment_details

logger = get_logger(__name__)


@dataclass
class CheckoutResult:
    success: bool
    order: Optional[CanonicalOrder] = None
    attempt: Optional[PaymentAttempt] = None
    error_message: Optional[str] = None
    error: Optional[MarketplaceError] = None
    cart_cleared: bool = False


class CheckoutFlow:
    def __init__(
        self,
        api: MarketplaceAPI,
        pacer: Optional[PhasePacer] = None,
        on_phase: Optional[Callable[[PaymentPhase], None]] = None,
    ):
        self.api = api
        self.assembler = OrderAssembler(api)
        self.simulator = PaymentSimulator(api)
        self.pacer = pacer or PhasePacer.from_settings(api.settings)
        self.on_phase = on_phase
        self.loading = False

    def _report(self, phase: PaymentPhase):
        if self.on_phase:
            self.on_phase(phase)

    def _canonical(self, raw, fallback: CanonicalOrder) -> CanonicalOrder:
        if not raw:
            return fallback
        return CanonicalOrder.from_raw(raw, self.api.settings.DEFAULT_COUNTRY)

    async def _pay(self, cart: Cart, order: CanonicalOrder, method: PaymentMethod, details) -> CheckoutResult:
        self._report(PaymentPhase.PROCESSING)
        attempt = await self.simulator.simulate(order.id, method, details)
        self._report(attempt.phase)
        await self.pacer.hold(attempt.phase)

        order = self._canonical(attempt.order, order)
        if not attempt.success:
            # Cart stays as it was so the user can retry or switch method
            return CheckoutResult(success=False, order=order, attempt=attempt, error_message=attempt.error_message)

        cart.clear()
        return CheckoutResult(success=True, order=order, attempt=attempt, cart_cleared=True)

    async def run(
        self,
        cart: Cart,
        address: Union[DeliveryAddress, Mapping[str, Any]],
        method: Union[PaymentMethod, str],
        payment_details: Optional[Mapping[str, Any]] = None,
        notes: Optional[str] = None,
        delivery_instructions: Optional[str] = None,
    ) -> CheckoutResult:
        self.loading = True
        try:
            draft = self.assembler.prepare(cart, address, method, notes, delivery_instructions)
            method = draft.payment_method
            details = validate_payment_details(method, payment_details)
            order = await self.assembler.submit(draft)

            if method == PaymentMethod.CASH:
                cart.clear()
                return CheckoutResult(success=True, order=order, cart_cleared=True)
            return await self._pay(cart, order, method, details)
        except MarketplaceError as e:
            logger.warning(f"Checkout failed: {e.user_message}", extra={'extra_fields': {'code': e.code}})
            return CheckoutResult(success=False, error_message=e.user_message, error=e)
        finally:
            self.loading = False

    async def retry_payment(
        self,
        cart: Cart,
        order: CanonicalOrder,
        method: Union[PaymentMethod, str],
        payment_details: Optional[Mapping[str, Any]] = None,
    ) -> CheckoutResult:
        """Pay again for an order created by an earlier, declined run."""
        self.loading = True
        try:
            details = validate_payment_details(method, payment_details)
            method = PaymentMethod(method)
            if method == PaymentMethod.CASH:
                raise UnsupportedPaymentMethod(f"{method.value} (collected on delivery)")
            if order.status != OrderStatus.PENDING or order.payment_status == PaymentStatus.PAID:
                message = f"Order {order.order_number} can no longer be paid"
                return CheckoutResult(success=False, order=order, error_message=message)
            return await self._pay(cart, order, method, details)
        except MarketplaceError as e:
            logger.warning(f"Payment retry failed: {e.user_message}", extra={'extra_fields': {'code': e.code}})
            return CheckoutResult(success=False, order=order, error_message=e.user_message, error=e)
        finally:
            self.loading = False
