"""Order money arithmetic.

All amounts are ``Decimal``. Rounding to cents happens only in
:meth:`OrderTotals.rounded`, which callers use at serialization and display
boundaries.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

TAX_RATE = Decimal("0.10")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a price-like value without inheriting binary float error."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, (int, str)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    raise ValueError(f"Unsupported monetary value: {value!r}")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "OrderTotals":
        subtotal = round_money(self.subtotal)
        tax = round_money(self.tax)
        return OrderTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)

    def as_payload(self) -> dict:
        """Two-decimal floats for JSON bodies."""
        rounded = self.rounded()
        return {
            "subtotal": float(rounded.subtotal),
            "taxAmount": float(rounded.tax),
            "totalAmount": float(rounded.total),
        }


def _line_values(item: Any):
    if isinstance(item, Mapping):
        price = item.get("unitPrice", item.get("unit_price", item.get("price")))
        quantity = item.get("quantity")
    else:
        price = getattr(item, "unit_price")
        quantity = getattr(item, "quantity")
    return price, quantity


def line_total(unit_price: Any, quantity: Any) -> Decimal:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f"Quantity must be a positive integer, got {quantity!r}")
    price = to_decimal(unit_price)
    if price < 0:
        raise ValueError(f"Unit price must not be negative, got {price}")
    return price * quantity


def calculate_totals(items: Iterable[Any], tax_rate: Decimal = TAX_RATE) -> OrderTotals:
    """Subtotal, tax and grand total for line items.

    ``items`` may hold objects exposing ``unit_price``/``quantity`` or mappings
    keyed ``unitPrice``, ``unit_price`` or ``price`` plus ``quantity``.
    """
    subtotal = sum((line_total(*_line_values(item)) for item in items), Decimal("0"))
    tax = subtotal * tax_rate
    return OrderTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
