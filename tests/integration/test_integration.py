"""
Integration Test Suite for the marketplace order service
Drives the async client against the FastAPI app in-process (httpx.ASGITransport)
"""

import asyncio
import time

import pytest

from marketplace.client import Cart, CheckoutFlow, OrderStatusController, PhasePacer
from marketplace.client.errors import InvalidTransition, TransitionInProgress
from marketplace.domain.status import Actor, OrderStatus, PaymentStatus, Role

ADDRESS = {"address": "12 Elm", "city": "Springfield", "state": "IL", "zipCode": "62701"}
CARD = {"cardNumber": "4111111111111111", "expiryDate": "12/39", "cvv": "123", "nameOnCard": "Jane Doe"}

FARMER = Actor("f-1", Role.FARMER, "Green Acres")
CONSUMER = Actor("c-1", Role.CONSUMER, "Jane Doe")


def filled_cart():
    cart = Cart(owner="c-1")
    cart.add("p-1", "f-1", "10.00", 2, product_name="Tomatoes", farmer_name="Green Acres")
    cart.add("p-2", "f-1", "5.00", 1, product_name="Eggs", farmer_name="Green Acres")
    return cart


class TestCheckoutIntegration:
    """End-to-end checkout and fulfillment through the HTTP surface"""

    @pytest.mark.asyncio
    async def test_card_checkout_and_fulfillment(self, asgi_api, gateway):
        gateway(1.0)
        cart = filled_cart()
        phases = []

        async with asgi_api("consumer") as consumer_api, asgi_api("farmer") as farmer_api:
            result = await CheckoutFlow(consumer_api, pacer=PhasePacer(enabled=False),
                                        on_phase=phases.append).run(cart, ADDRESS, "card", CARD)
            assert result.success, result.error_message
            assert cart.is_empty()
            order = result.order
            assert order.total_amount == 27.5
            assert order.payment_status == PaymentStatus.PAID
            assert order.status == OrderStatus.PENDING
            # Legacy address shape stored, canonical shape seen by the client
            assert order.shipping_address.address_line1 == "12 Elm"
            assert order.shipping_address.first_name == "Jane"
            assert order.shipping_address.last_name == "Doe"

            controller = OrderStatusController(farmer_api, FARMER)
            for expected in ("confirmed", "processing", "shipped", "delivered"):
                order = await controller.advance(order.id)
                assert order.status.value == expected

            assert order.actual_delivery is not None
            assert controller.available_transitions(order) == frozenset()
            assert [event.status.value for event in order.status_history] == [
                "pending", "confirmed", "processing", "shipped", "delivered",
            ]

    @pytest.mark.asyncio
    async def test_declined_then_retried_payment(self, asgi_api, gateway):
        gateway(0.0)
        cart = filled_cart()

        async with asgi_api("consumer") as api:
            flow = CheckoutFlow(api, pacer=PhasePacer(enabled=False))
            declined = await flow.run(cart, ADDRESS, "upi", {"upiId": "jane@okbank"})
            assert not declined.success
            assert declined.order.status == OrderStatus.PENDING
            assert declined.order.payment_status == PaymentStatus.PENDING
            assert len(cart) == 2

            gateway(1.0)
            retried = await flow.retry_payment(cart, declined.order, "card", CARD)
            assert retried.success
            assert retried.order.id == declined.order.id
            assert cart.is_empty()

            orders = await api.my_orders()
            assert len(orders) == 1

    @pytest.mark.asyncio
    async def test_cash_on_delivery(self, asgi_api):
        cart = filled_cart()

        async with asgi_api("consumer") as consumer_api, asgi_api("farmer") as farmer_api:
            result = await CheckoutFlow(consumer_api, pacer=PhasePacer(enabled=False)).run(cart, ADDRESS, "cash")
            assert result.success
            assert result.order.payment_status == PaymentStatus.PENDING

            confirmed = await OrderStatusController(farmer_api, FARMER).advance(result.order.id)
            assert confirmed.payment_status == PaymentStatus.PAID

            verification = await consumer_api.verify_payment(result.order.id)
            assert verification == {"paymentStatus": "paid", "orderStatus": "confirmed", "paymentMethod": "cash"}

    @pytest.mark.asyncio
    async def test_rapid_transitions_do_not_both_apply(self, asgi_api):
        cart = filled_cart()

        async with asgi_api("consumer") as consumer_api, asgi_api("farmer") as farmer_api:
            result = await CheckoutFlow(consumer_api, pacer=PhasePacer(enabled=False)).run(cart, ADDRESS, "cash")
            order_id = result.order.id
            controller = OrderStatusController(farmer_api, FARMER)

            outcomes = await asyncio.gather(
                controller.request_transition(order_id, "confirmed"),
                controller.request_transition(order_id, "processing"),
                return_exceptions=True,
            )
            assert outcomes[0].status == OrderStatus.CONFIRMED
            assert isinstance(outcomes[1], TransitionInProgress)

            # A second viewer still holding the old "pending" read is re-validated
            other_viewer = OrderStatusController(farmer_api, FARMER)
            with pytest.raises(InvalidTransition):
                await other_viewer.request_transition(order_id, "confirmed")

            current = await controller.load(order_id)
            assert current.status == OrderStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_consumer_cancellation(self, asgi_api):
        cart = filled_cart()

        async with asgi_api("consumer") as api:
            result = await CheckoutFlow(api, pacer=PhasePacer(enabled=False)).run(cart, ADDRESS, "cash")
            controller = OrderStatusController(api, CONSUMER)
            assert controller.available_transitions(result.order) == {OrderStatus.CANCELLED}

            cancelled = await controller.cancel(result.order.id, "Ordered twice")
            assert cancelled.status == OrderStatus.CANCELLED
            assert cancelled.cancellation_reason == "Ordered twice"
            assert cancelled.payment_status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_payment_methods_endpoint(self, asgi_api):
        async with asgi_api("consumer") as api:
            methods = await api.payment_methods()
        assert [m["id"] for m in methods] == ["card", "upi", "wallet", "cash"]

    @pytest.mark.performance
    @pytest.mark.asyncio
    async def test_performance_baseline(self, asgi_api):
        async with asgi_api("consumer") as api:
            start = time.time()
            await api.my_orders()
            duration = time.time() - start
        assert duration < 1.0, f"/orders/consumer/my-orders took {duration:.3f}s"
