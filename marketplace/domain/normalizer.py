"""Order record normalization.

Order records reach the client in two shapes: the legacy one carrying
``deliveryAddress {address, city, state, zipCode}`` and the canonical one
carrying ``shippingAddress``. :func:`normalize_order` is the only place that
knows about both; everything downstream reads :class:`CanonicalOrder`.
"""

import copy
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .pricing import to_decimal
from .status import OrderParties, OrderStatus, PaymentMethod, PaymentStatus

DEFAULT_COUNTRY = "US"


def split_display_name(name: Optional[str]):
    """``"Jane Van Doe"`` -> ``("Jane", "Van Doe")``; no space -> empty last name."""
    if not name:
        return "", ""
    first, _, last = name.partition(" ")
    return first, last


def _shipping_from_legacy(legacy: Mapping, consumer: Mapping, default_country: str) -> Dict[str, Any]:
    shipping = {
        "addressLine1": legacy.get("address"),
        "city": legacy.get("city"),
        "state": legacy.get("state"),
        "zipCode": legacy.get("zipCode"),
        "country": legacy.get("country") or default_country,
    }
    if consumer.get("name"):
        shipping["firstName"], shipping["lastName"] = split_display_name(consumer["name"])
    if consumer.get("phone"):
        shipping["phone"] = consumer["phone"]
    return shipping


def _reference(value: Any) -> Dict[str, Any]:
    """Populated reference as-is; a bare id becomes ``{"id": ...}``; missing becomes ``{}``."""
    if isinstance(value, Mapping):
        return dict(value)
    if value is None or value == "":
        return {}
    return {"id": str(value)}


def normalize_order(raw: Mapping[str, Any], default_country: str = DEFAULT_COUNTRY) -> Dict[str, Any]:
    """Canonical camelCase record for ``raw``. Pure and idempotent."""
    normalized = copy.deepcopy(dict(raw))
    # Unpopulated legacy records carry the consumer as a bare id
    consumer = _reference(normalized.get("consumer"))
    if "consumer" in normalized:
        normalized["consumer"] = consumer

    legacy = normalized.pop("deliveryAddress", None)
    if not normalized.get("shippingAddress") and legacy:
        normalized["shippingAddress"] = _shipping_from_legacy(legacy, consumer, default_country)

    items = normalized.get("items")
    if isinstance(items, list):
        normalized["items"] = [
            {**item, "product": _reference(item.get("product")), "farmer": _reference(item.get("farmer"))}
            for item in items
        ]

    normalized["status"] = normalized.get("status") or OrderStatus.PENDING.value
    normalized["paymentStatus"] = normalized.get("paymentStatus") or PaymentStatus.PENDING.value

    if (normalized.get("paymentMethod") == PaymentMethod.CASH.value
            and normalized["status"] not in (OrderStatus.PENDING.value, OrderStatus.CANCELLED.value)):
        normalized["paymentStatus"] = PaymentStatus.PAID.value

    return normalized


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ShippingAddress(_CamelModel):
    address_line1: Optional[str] = Field(None, alias="addressLine1")
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(None, alias="zipCode")
    country: str = DEFAULT_COUNTRY
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    phone: Optional[str] = None


class OrderLine(_CamelModel):
    product: Dict[str, Any] = Field(default_factory=dict)
    farmer: Dict[str, Any] = Field(default_factory=dict)
    quantity: int
    unit_price: Decimal = Field(alias="price")

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price_as_decimal(cls, value):
        return to_decimal(value)


class PaymentInfo(_CamelModel):
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    payment_date: Optional[datetime] = Field(None, alias="paymentDate")
    failure_reason: Optional[str] = Field(None, alias="failureReason")


class StatusEvent(_CamelModel):
    status: OrderStatus
    updated_by: Optional[str] = Field(None, alias="updatedBy")
    role: Optional[str] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class CanonicalOrder(_CamelModel):
    """The single in-memory order representation used after normalization."""

    id: Any
    order_number: str = Field(alias="orderNumber")
    consumer: Dict[str, Any] = Field(default_factory=dict)
    items: List[OrderLine] = Field(default_factory=list)
    subtotal: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = Field(None, alias="taxAmount")
    total_amount: Decimal = Field(alias="totalAmount")
    shipping_address: Optional[ShippingAddress] = Field(None, alias="shippingAddress")
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="paymentStatus")
    payment_details: PaymentInfo = Field(default_factory=PaymentInfo, alias="paymentDetails")
    delivery_instructions: Optional[str] = Field(None, alias="deliveryInstructions")
    consumer_notes: Optional[str] = Field(None, alias="consumerNotes")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    paid_at: Optional[datetime] = Field(None, alias="paidAt")
    actual_delivery: Optional[datetime] = Field(None, alias="actualDelivery")
    cancellation_reason: Optional[str] = Field(None, alias="cancellationReason")
    cancelled_by: Optional[str] = Field(None, alias="cancelledBy")
    cancelled_at: Optional[datetime] = Field(None, alias="cancelledAt")
    status_history: List[StatusEvent] = Field(default_factory=list, alias="statusHistory")

    @field_validator("subtotal", "tax_amount", "total_amount", mode="before")
    @classmethod
    def _money_as_decimal(cls, value):
        return None if value is None else to_decimal(value)

    @field_validator("payment_details", mode="before")
    @classmethod
    def _details_default(cls, value):
        return value or {}

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], default_country: str = DEFAULT_COUNTRY) -> "CanonicalOrder":
        return cls.model_validate(normalize_order(raw, default_country))

    def parties(self) -> OrderParties:
        return OrderParties.of(
            self.consumer.get("id"),
            (line.farmer.get("id") for line in self.items),
        )
