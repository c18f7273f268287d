from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

from marketplace.domain.pricing import OrderTotals, calculate_totals, line_total, to_decimal
from shared.core import get_logger
from .errors import MarketplaceError

logger = get_logger(__name__)


class CartClosed(MarketplaceError):
    code = "cart_closed"

    def __init__(self):
        super().__init__("Your session has ended. Please start again.")


@dataclass
class CartLine:
    product_id: str
    farmer_id: str
    unit_price: Decimal
    quantity: int
    product_name: Optional[str] = None
    farmer_name: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return line_total(self.unit_price, self.quantity)

    def as_item(self) -> dict:
        """Line in the ``POST /orders`` item shape."""
        return {
            "product": {"id": self.product_id, "name": self.product_name},
            "farmer": {"id": self.farmer_id, "name": self.farmer_name},
            "quantity": self.quantity,
            "price": float(self.unit_price),
        }


class Cart:
    """Pre-order basket owned by one session.

    Cleared by the checkout flow only after a fully successful checkout, or by
    an explicit user action. Once :meth:`close` runs every mutation raises
    :class:`CartClosed`.
    """

    def __init__(self, owner: Optional[str] = None):
        self.owner = owner
        self._lines: List[CartLine] = []
        self._closed = False

    def _ensure_open(self):
        if self._closed:
            raise CartClosed()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines)

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(list(self._lines))

    def _find(self, product_id: str) -> Optional[CartLine]:
        return next((line for line in self._lines if line.product_id == str(product_id)), None)

    def add(self, product_id, farmer_id, unit_price: Any, quantity: int = 1,
            product_name: Optional[str] = None, farmer_name: Optional[str] = None) -> CartLine:
        """Add a product; adding one already in the cart merges quantities."""
        self._ensure_open()
        price = to_decimal(unit_price)
        line_total(price, quantity)
        existing = self._find(product_id)
        if existing:
            existing.quantity += quantity
            return existing
        line = CartLine(
            product_id=str(product_id),
            farmer_id=str(farmer_id),
            unit_price=price,
            quantity=quantity,
            product_name=product_name,
            farmer_name=farmer_name,
        )
        self._lines.append(line)
        return line

    def update_quantity(self, product_id, quantity: int):
        """Set a line's quantity; zero removes the line."""
        self._ensure_open()
        if quantity == 0:
            self.remove(product_id)
            return
        line = self._find(product_id)
        if line is None:
            raise KeyError(product_id)
        line_total(line.unit_price, quantity)
        line.quantity = quantity

    def remove(self, product_id):
        self._ensure_open()
        self._lines = [line for line in self._lines if line.product_id != str(product_id)]

    def clear(self):
        self._ensure_open()
        self._lines = []
        logger.debug("Cart cleared", extra={'extra_fields': {'owner': self.owner}})

    def is_empty(self) -> bool:
        return not self._lines

    def totals(self) -> OrderTotals:
        """Live order summary; unrounded until displayed."""
        return calculate_totals(self._lines)

    def items_payload(self) -> List[dict]:
        return [line.as_item() for line in self._lines]

    def close(self):
        self._lines = []
        self._closed = True
