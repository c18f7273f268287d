"""
Order record normalization: legacy address shape, defaults, cash override.
"""

import copy
from decimal import Decimal

import pytest
from hypothesis import given, strategies as st

from marketplace.domain.normalizer import CanonicalOrder, normalize_order, split_display_name
from marketplace.domain.status import OrderStatus, PaymentStatus

LEGACY = {
    "id": 1,
    "orderNumber": "ORD-1-1",
    "consumer": {"id": "c-1", "name": "Jane Doe"},
    "items": [{"product": None, "quantity": 1, "price": 5.0}],
    "totalAmount": 5.5,
    "paymentMethod": "card",
    "deliveryAddress": {"address": "12 Elm", "city": "X", "state": "Y", "zipCode": "1"},
}


def test_legacy_address_becomes_shipping_address():
    normalized = normalize_order(LEGACY)
    assert normalized["shippingAddress"] == {
        "addressLine1": "12 Elm",
        "city": "X",
        "state": "Y",
        "zipCode": "1",
        "country": "US",
        "firstName": "Jane",
        "lastName": "Doe",
    }
    assert "deliveryAddress" not in normalized


def test_shipping_address_wins_over_legacy():
    raw = dict(LEGACY, shippingAddress={"addressLine1": "1 Main", "city": "A", "state": "B",
                                        "zipCode": "2", "country": "IN"})
    assert normalize_order(raw)["shippingAddress"]["addressLine1"] == "1 Main"


def test_legacy_country_and_phone_are_kept():
    raw = copy.deepcopy(LEGACY)
    raw["deliveryAddress"]["country"] = "IN"
    raw["consumer"]["phone"] = "555-0100"
    shipping = normalize_order(raw)["shippingAddress"]
    assert shipping["country"] == "IN"
    assert shipping["phone"] == "555-0100"


@pytest.mark.parametrize("name,expected", [
    ("Jane Doe", ("Jane", "Doe")),
    ("Jane Van Doe", ("Jane", "Van Doe")),
    ("Cher", ("Cher", "")),
    ("", ("", "")),
    (None, ("", "")),
])
def test_split_display_name(name, expected):
    assert split_display_name(name) == expected


def test_unpopulated_references_become_id_objects():
    raw = dict(LEGACY, consumer="c-1", items=[{"product": "p-1", "farmer": "f-1", "quantity": 1, "price": 5.0}])
    normalized = normalize_order(raw)
    assert normalized["consumer"] == {"id": "c-1"}
    assert normalized["items"][0]["product"] == {"id": "p-1"}
    assert normalized["items"][0]["farmer"] == {"id": "f-1"}
    # No display name to split, but the legacy address still converts
    assert normalized["shippingAddress"]["addressLine1"] == "12 Elm"
    assert "firstName" not in normalized["shippingAddress"]

    order = CanonicalOrder.from_raw(raw)
    assert order.parties().consumer_id == "c-1"
    assert order.parties().farmer_ids == {"f-1"}


def test_item_references_default_to_empty_objects():
    normalized = normalize_order(LEGACY)
    assert normalized["items"][0]["product"] == {}
    assert normalized["items"][0]["farmer"] == {}


def test_status_defaults_to_pending():
    normalized = normalize_order(LEGACY)
    assert normalized["status"] == "pending"
    assert normalized["paymentStatus"] == "pending"


def test_input_is_not_mutated():
    raw = copy.deepcopy(LEGACY)
    normalize_order(raw)
    assert raw == LEGACY


@pytest.mark.parametrize("status", ["confirmed", "processing", "shipped", "delivered"])
def test_cash_past_pending_is_paid(status):
    raw = dict(LEGACY, paymentMethod="cash", status=status, paymentStatus="pending")
    assert normalize_order(raw)["paymentStatus"] == "paid"


@pytest.mark.parametrize("status", ["pending", "cancelled"])
@pytest.mark.parametrize("stored", ["pending", "failed", "paid"])
def test_cash_pending_or_cancelled_passes_through(status, stored):
    raw = dict(LEGACY, paymentMethod="cash", status=status, paymentStatus=stored)
    assert normalize_order(raw)["paymentStatus"] == stored


def test_card_payment_status_is_never_overridden():
    raw = dict(LEGACY, status="delivered", paymentStatus="pending")
    assert normalize_order(raw)["paymentStatus"] == "pending"


def test_canonical_model():
    order = CanonicalOrder.from_raw(dict(LEGACY, paymentMethod="cash", status="shipped"))
    assert order.status == OrderStatus.SHIPPED
    assert order.payment_status == PaymentStatus.PAID
    assert order.shipping_address.first_name == "Jane"
    assert order.total_amount == Decimal("5.5")
    assert order.items[0].unit_price == Decimal("5.0")
    assert order.parties().consumer_id == "c-1"


raw_orders = st.fixed_dictionaries(
    {
        "id": st.integers(min_value=1),
        "orderNumber": st.text(min_size=1, max_size=20),
        "paymentMethod": st.sampled_from(["card", "upi", "wallet", "cash"]),
        "consumer": st.one_of(
            st.fixed_dictionaries({"name": st.one_of(st.none(), st.text(max_size=20))}),
            st.text(min_size=1, max_size=8),
            st.none(),
        ),
        "items": st.lists(
            st.fixed_dictionaries(
                {"quantity": st.integers(1, 5)},
                optional={"product": st.one_of(st.none(), st.text(max_size=8)),
                          "farmer": st.one_of(st.none(), st.text(max_size=8), st.fixed_dictionaries({"id": st.text(max_size=8)}))},
            ),
            max_size=3,
        ),
    },
    optional={
        "status": st.sampled_from([s.value for s in OrderStatus]),
        "paymentStatus": st.sampled_from([s.value for s in PaymentStatus]),
        "deliveryAddress": st.fixed_dictionaries({
            "address": st.text(min_size=1, max_size=10),
            "city": st.text(max_size=10),
            "state": st.text(max_size=10),
            "zipCode": st.text(max_size=5),
        }),
        "shippingAddress": st.fixed_dictionaries({
            "addressLine1": st.text(min_size=1, max_size=10),
            "country": st.sampled_from(["US", "IN"]),
        }),
    },
)


@given(raw_orders)
def test_normalize_is_idempotent(raw):
    once = normalize_order(raw)
    assert normalize_order(once) == once
