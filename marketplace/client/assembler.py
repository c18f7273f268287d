"""Turns a cart, an address and a payment choice into a created order."""

import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from marketplace.domain.normalizer import CanonicalOrder
from marketplace.domain.pricing import OrderTotals, calculate_totals
from marketplace.domain.status import PaymentMethod
from shared.core import get_logger
from .api_client import MarketplaceAPI
from .cart import Cart, CartLine
from .errors import EmptyCart, InvalidAddress, UnsupportedPaymentMethod

logger = get_logger(__name__)


def provisional_order_number() -> str:
    """``ORD-<epoch-millis>-<0..999>``, shown until the server answers."""
    return f"ORD-{int(time.time() * 1000)}-{random.randint(0, 999)}"


@dataclass
class DeliveryAddress:
    address: str
    city: str
    state: str
    zip_code: str
    country: Optional[str] = None

    REQUIRED = ("address", "city", "state", "zip_code")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeliveryAddress":
        return cls(
            address=data.get("address") or data.get("addressLine1") or "",
            city=data.get("city") or "",
            state=data.get("state") or "",
            zip_code=data.get("zipCode") or data.get("zip_code") or "",
            country=data.get("country"),
        )

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if not str(getattr(self, name) or "").strip()]

    def as_payload(self) -> Dict[str, Any]:
        payload = {
            "address": self.address.strip(),
            "city": self.city.strip(),
            "state": self.state.strip(),
            "zipCode": self.zip_code.strip(),
        }
        if self.country:
            payload["country"] = self.country
        return payload


@dataclass
class OrderDraft:
    """A validated order request that has not been sent yet.

    ``provisional_number`` is for display only; the number on the record the
    server returns replaces it.
    """

    provisional_number: str
    payment_method: PaymentMethod
    totals: OrderTotals
    payload: Dict[str, Any] = field(default_factory=dict)


def _item_payload(item: Any) -> Dict[str, Any]:
    if isinstance(item, CartLine):
        return item.as_item()
    return {
        "product": item.get("product") or item.get("productId"),
        "farmer": item.get("farmer") or item.get("farmerId"),
        "quantity": item["quantity"],
        "price": float(item.get("unitPrice", item.get("price"))),
    }


class OrderAssembler:
    def __init__(self, api: MarketplaceAPI):
        self.api = api

    def prepare(
        self,
        cart_items: Union[Cart, Iterable[Any]],
        address: Union[DeliveryAddress, Mapping[str, Any]],
        payment_method: Union[PaymentMethod, str],
        notes: Optional[str] = None,
        delivery_instructions: Optional[str] = None,
    ) -> OrderDraft:
        """Validate everything that can be checked without the network."""
        items = list(cart_items.lines if isinstance(cart_items, Cart) else cart_items or [])
        if not items:
            raise EmptyCart()

        if not isinstance(address, DeliveryAddress):
            address = DeliveryAddress.from_mapping(address or {})
        missing = address.missing_fields()
        if missing:
            raise InvalidAddress(missing)

        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise UnsupportedPaymentMethod(payment_method) from None

        totals = calculate_totals(items)
        number = provisional_order_number()
        payload = {
            "items": [_item_payload(item) for item in items],
            "totalAmount": totals.as_payload()["totalAmount"],
            "deliveryAddress": address.as_payload(),
            "paymentMethod": method.value,
            "orderNumber": number,
        }
        if delivery_instructions:
            payload["deliveryInstructions"] = delivery_instructions
        if notes:
            payload["consumerNotes"] = notes
        return OrderDraft(provisional_number=number, payment_method=method, totals=totals, payload=payload)

    async def submit(self, draft: OrderDraft) -> CanonicalOrder:
        """Send the draft once; no automatic retry."""
        raw = await self.api.create_order(draft.payload)
        order = CanonicalOrder.from_raw(raw, self.api.settings.DEFAULT_COUNTRY)
        logger.info(
            f"Order {order.order_number} created",
            extra={'extra_fields': {'provisional_number': draft.provisional_number, 'order_id': order.id}}
        )
        return order

    async def create_order(
        self,
        cart_items: Union[Cart, Iterable[Any]],
        address: Union[DeliveryAddress, Mapping[str, Any]],
        payment_method: Union[PaymentMethod, str],
        notes: Optional[str] = None,
        delivery_instructions: Optional[str] = None,
    ) -> CanonicalOrder:
        draft = self.prepare(cart_items, address, payment_method, notes, delivery_instructions)
        return await self.submit(draft)
