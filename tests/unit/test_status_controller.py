"""
Client-side status changes: one mutation per order in flight, and every
request validated against a fresh read of the order.
"""

import asyncio
import json

import httpx
import pytest

from marketplace.client.errors import Forbidden, InvalidTransition, TransitionForbidden, TransitionInProgress
from marketplace.client.status import OrderStatusController
from marketplace.domain.normalizer import CanonicalOrder
from marketplace.domain.status import Actor, OrderStatus, Role

FARMER = Actor("f-1", Role.FARMER)
CONSUMER = Actor("c-1", Role.CONSUMER)


class StatusBackend:
    def __init__(self, order_record, status="pending"):
        self.order_record = order_record
        self.status = status
        self.puts = []
        self.release = None

    async def __call__(self, request):
        if request.method == "GET":
            if self.release is not None:
                await self.release.wait()
            return httpx.Response(200, json=self.order_record(status=self.status))
        body = json.loads(request.content)
        self.puts.append((request.url.path, body))
        if request.url.path.endswith("/cancel"):
            self.status = "cancelled"
        else:
            self.status = body["status"]
        return httpx.Response(200, json=self.order_record(status=self.status))


@pytest.mark.asyncio
async def test_second_request_while_first_in_flight_is_rejected(mock_api, order_record):
    backend = StatusBackend(order_record)
    backend.release = asyncio.Event()

    async with mock_api(backend) as api:
        controller = OrderStatusController(api, FARMER)
        first = asyncio.create_task(controller.request_transition(7, "confirmed"))
        await asyncio.sleep(0)
        assert controller.is_updating(7)

        with pytest.raises(TransitionInProgress):
            await controller.request_transition(7, "processing")

        backend.release.set()
        updated = await first

    assert updated.status == OrderStatus.CONFIRMED
    assert backend.puts == [("/orders/7/status", {"status": "confirmed"})]
    assert not controller.is_updating(7)


@pytest.mark.asyncio
async def test_transition_checked_against_latest_status(mock_api, order_record):
    # The viewer still shows "pending" but the stored order already moved on
    backend = StatusBackend(order_record, status="confirmed")

    async with mock_api(backend) as api:
        controller = OrderStatusController(api, FARMER)
        with pytest.raises(InvalidTransition):
            await controller.request_transition(7, "confirmed")

    assert backend.puts == []


@pytest.mark.asyncio
async def test_advance_uses_current_status(mock_api, order_record):
    backend = StatusBackend(order_record, status="processing")

    async with mock_api(backend) as api:
        updated = await OrderStatusController(api, FARMER).advance(7)

    assert updated.status == OrderStatus.SHIPPED


@pytest.mark.asyncio
async def test_advance_past_delivered_is_invalid(mock_api, order_record):
    backend = StatusBackend(order_record, status="delivered")

    async with mock_api(backend) as api:
        with pytest.raises(InvalidTransition):
            await OrderStatusController(api, FARMER).advance(7)


@pytest.mark.asyncio
async def test_consumer_cannot_confirm(mock_api, order_record):
    backend = StatusBackend(order_record)

    async with mock_api(backend) as api:
        with pytest.raises(TransitionForbidden):
            await OrderStatusController(api, CONSUMER).request_transition(7, "confirmed")

    assert backend.puts == []


@pytest.mark.asyncio
async def test_consumer_cancel_uses_cancel_endpoint(mock_api, order_record):
    backend = StatusBackend(order_record)

    async with mock_api(backend) as api:
        updated = await OrderStatusController(api, CONSUMER).cancel(7, "Changed my mind")

    assert updated.status == OrderStatus.CANCELLED
    assert backend.puts == [("/orders/7/cancel", {"reason": "Changed my mind"})]


@pytest.mark.asyncio
async def test_updating_flag_cleared_after_server_rejection(mock_api, order_record):
    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=order_record())
        return httpx.Response(403, json={"detail": "A farmer may not move this order from pending to confirmed"})

    async with mock_api(handler) as api:
        controller = OrderStatusController(api, FARMER)
        with pytest.raises(Forbidden):
            await controller.request_transition(7, "confirmed")
        assert not controller.is_updating(7)


def test_available_transitions_follow_the_policy(mock_api, order_record):
    order = CanonicalOrder.from_raw(order_record(status="pending"))
    api = mock_api(lambda request: httpx.Response(500))
    assert OrderStatusController(api, FARMER).available_transitions(order) == {
        OrderStatus.CONFIRMED, OrderStatus.CANCELLED,
    }
    assert OrderStatusController(api, CONSUMER).available_transitions(order) == {OrderStatus.CANCELLED}
    assert OrderStatusController(api, Actor("f-2", Role.FARMER)).available_transitions(order) == frozenset()


@pytest.mark.asyncio
async def test_unknown_target_status_is_an_invalid_transition(mock_api, order_record):
    backend = StatusBackend(order_record)

    async with mock_api(backend) as api:
        controller = OrderStatusController(api, FARMER)
        with pytest.raises(InvalidTransition):
            await controller.request_transition(7, "archived")
        assert not controller.is_updating(7)

    assert backend.puts == []
