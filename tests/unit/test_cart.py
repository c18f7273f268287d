from decimal import Decimal

import pytest

from marketplace.client.cart import Cart, CartClosed


def test_add_merges_same_product():
    cart = Cart(owner="c-1")
    cart.add("p-1", "f-1", "10.00", 2)
    cart.add("p-1", "f-1", "10.00", 1)
    assert len(cart) == 1
    assert cart.lines[0].quantity == 3


def test_totals_are_live():
    cart = Cart()
    cart.add("p-1", "f-1", 10.00, 2)
    cart.add("p-2", "f-2", 5.00, 1)
    totals = cart.totals().rounded()
    assert (totals.subtotal, totals.tax, totals.total) == (Decimal("25.00"), Decimal("2.50"), Decimal("27.50"))


def test_update_quantity_and_remove():
    cart = Cart()
    cart.add("p-1", "f-1", "1.50", 1)
    cart.add("p-2", "f-1", "2.00", 1)
    cart.update_quantity("p-1", 4)
    assert cart.lines[0].line_total == Decimal("6.00")
    cart.update_quantity("p-2", 0)
    assert [line.product_id for line in cart] == ["p-1"]
    cart.remove("p-1")
    assert cart.is_empty()


def test_update_unknown_product():
    with pytest.raises(KeyError):
        Cart().update_quantity("missing", 1)


def test_invalid_quantity_is_rejected():
    cart = Cart()
    with pytest.raises(ValueError):
        cart.add("p-1", "f-1", "1.00", 0)
    assert cart.is_empty()


def test_items_payload_shape():
    cart = Cart()
    cart.add("p-1", "f-1", "3.25", 2, product_name="Eggs", farmer_name="Hill Farm")
    assert cart.items_payload() == [{
        "product": {"id": "p-1", "name": "Eggs"},
        "farmer": {"id": "f-1", "name": "Hill Farm"},
        "quantity": 2,
        "price": 3.25,
    }]


def test_closed_cart_rejects_mutation():
    cart = Cart()
    cart.add("p-1", "f-1", "1.00", 1)
    cart.close()
    assert cart.is_empty()
    with pytest.raises(CartClosed):
        cart.add("p-2", "f-1", "1.00", 1)
    with pytest.raises(CartClosed):
        cart.clear()
