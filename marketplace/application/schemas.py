from pydantic import BaseModel, ConfigDict, Field, model_validator
from decimal import Decimal
from typing import Any, Dict, Optional

from marketplace.domain.status import OrderStatus, PaymentMethod


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Reference(BaseModel):
    id: str
    name: Optional[str] = None


class OrderItemCreate(BaseModel):
    product: str | Reference
    farmer: str | Reference
    quantity: int = Field(..., gt=0)
    price: Decimal = Field(..., ge=0, decimal_places=2)

    @property
    def product_id(self) -> str:
        return self.product.id if isinstance(self.product, Reference) else self.product

    @property
    def product_name(self) -> Optional[str]:
        return self.product.name if isinstance(self.product, Reference) else None

    @property
    def farmer_id(self) -> str:
        return self.farmer.id if isinstance(self.farmer, Reference) else self.farmer

    @property
    def farmer_name(self) -> Optional[str]:
        return self.farmer.name if isinstance(self.farmer, Reference) else None


class DeliveryAddressIn(CamelModel):
    """Legacy address shape."""
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1, alias="zipCode")
    country: Optional[str] = None


class ShippingAddressIn(CamelModel):
    address_line1: str = Field(..., min_length=1, alias="addressLine1")
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1, alias="zipCode")
    country: str = Field(..., min_length=1)
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    phone: Optional[str] = None


class OrderCreate(CamelModel):
    items: list[OrderItemCreate] = Field(..., min_length=1)
    total_amount: Optional[Decimal] = Field(None, alias="totalAmount")
    delivery_address: Optional[DeliveryAddressIn] = Field(None, alias="deliveryAddress")
    shipping_address: Optional[ShippingAddressIn] = Field(None, alias="shippingAddress")
    payment_method: PaymentMethod = Field(PaymentMethod.CARD, alias="paymentMethod")
    delivery_instructions: Optional[str] = Field(None, alias="deliveryInstructions")
    consumer_notes: Optional[str] = Field(None, alias="consumerNotes")
    order_number: Optional[str] = Field(None, max_length=50, alias="orderNumber")

    @model_validator(mode="after")
    def _exactly_one_address(self):
        if (self.delivery_address is None) == (self.shipping_address is None):
            raise ValueError("Provide exactly one of deliveryAddress or shippingAddress")
        return self


class StatusUpdate(BaseModel):
    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=255)


class CancelRequest(BaseModel):
    reason: str = Field("Cancelled by user", max_length=255)


class PaymentSimulateRequest(CamelModel):
    order_id: int = Field(..., alias="orderId")
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")
    payment_details: Dict[str, Any] = Field(default_factory=dict, alias="paymentDetails")


class PaymentMethodRead(BaseModel):
    id: PaymentMethod
    name: str
    description: str
    icons: list[str]
    supported: bool = True


class PaymentVerification(CamelModel):
    payment_status: str = Field(..., serialization_alias="paymentStatus")
    order_status: str = Field(..., serialization_alias="orderStatus")
    payment_method: str = Field(..., serialization_alias="paymentMethod")
