from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError
from marketplace.domain.models import Order, OrderItem, OrderStatusEvent, utcnow
from marketplace.domain.pricing import calculate_totals
from marketplace.domain.status import POLICY, Actor, OrderParties, OrderStatus, PaymentStatus, Role
from marketplace.core_settings import get_settings
from shared.core import get_logger, set_request_context
from .errors import ConcurrentModification, OrderAccessDenied, OrderNotFound, ServiceError
from .schemas import OrderCreate
from datetime import datetime
from decimal import Decimal
import random
import time
from typing import Optional, List

logger = get_logger(__name__)

ORDER_NUMBER_MAX_ATTEMPTS = 5


def generate_order_number() -> str:
    """ORD-<epoch-millis>-<0..999>"""
    return f"ORD-{int(time.time() * 1000)}-{random.randint(0, 999)}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


class OrderService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # -- reads ---------------------------------------------------------

    def get(self, order_id: int) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_for(self, order_id: int, actor: Actor, for_update: bool = False) -> Order:
        """Load an order the actor is a party to."""
        query = self.db.query(Order).filter(Order.id == order_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        order = query.first()
        if not order:
            raise OrderNotFound(order_id)
        if not self.parties(order).involves(actor):
            raise OrderAccessDenied("Not authorized to access this order")
        set_request_context(order_id=order.id)
        return order

    def list_for_consumer(self, actor: Actor) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.consumer_id == actor.id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    def list_for_farmer(self, actor: Actor) -> List[Order]:
        query = self.db.query(Order).options(selectinload(Order.items))
        if actor.role != Role.ADMIN:
            query = query.filter(Order.items.any(OrderItem.farmer_id == actor.id))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    @staticmethod
    def parties(order: Order) -> OrderParties:
        return OrderParties.of(order.consumer_id, order.farmer_ids)

    # -- creation ------------------------------------------------------

    def _order_number_taken(self, order_number: str) -> bool:
        return self.db.query(Order.id).filter(Order.order_number == order_number).first() is not None

    def _resolve_order_number(self, requested: Optional[str]) -> str:
        """Keep the client's fallback number unless it is already used."""
        if requested and not self._order_number_taken(requested):
            return requested
        if requested:
            logger.warning(f"Order number {requested} already exists; assigning a new one")
        for _ in range(ORDER_NUMBER_MAX_ATTEMPTS):
            candidate = generate_order_number()
            if not self._order_number_taken(candidate):
                return candidate
        raise ServiceError("Could not allocate a unique order number; please retry")

    def _build_items(self, data: OrderCreate) -> List[OrderItem]:
        items = []
        for item in data.items:
            items.append(OrderItem(
                product_id=item.product_id,
                farmer_id=item.farmer_id,
                quantity=item.quantity,
                unit_price=item.price,
                product_name_snapshot=item.product_name,
                farmer_name_snapshot=item.farmer_name,
            ))
        return items

    def _new_order(self, data: OrderCreate, actor: Actor, order_number: str) -> Order:
        items = self._build_items(data)
        totals = calculate_totals(items, tax_rate=self.settings.TAX_RATE).rounded()
        order = Order(
            order_number=order_number,
            consumer_id=actor.id,
            consumer_name_snapshot=actor.name,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=data.payment_method.value,
            subtotal=totals.subtotal,
            tax_amount=totals.tax,
            total_amount=totals.total,
            delivery_instructions=data.delivery_instructions,
            consumer_notes=data.consumer_notes,
            items=items,
        )
        if data.shipping_address is not None:
            order.shipping_address = data.shipping_address.model_dump(by_alias=True, exclude_none=True)
        else:
            order.delivery_address = data.delivery_address.model_dump(by_alias=True, exclude_none=True)
        order.history.append(OrderStatusEvent(
            status=OrderStatus.PENDING.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
            reason="Order placed",
        ))
        return order

    def create(self, data: OrderCreate, actor: Actor) -> Order:
        if actor.role != Role.CONSUMER:
            raise OrderAccessDenied("Only consumers can place orders")

        requested = data.order_number
        for _ in range(ORDER_NUMBER_MAX_ATTEMPTS):
            order = self._new_order(data, actor, self._resolve_order_number(requested))
            self.db.add(order)
            try:
                self.db.commit()
                break
            except IntegrityError:
                self.db.rollback()
                # A concurrent create took the number between the check and the insert
                if not self._order_number_taken(order.order_number):
                    raise
                logger.warning(f"Order number {order.order_number} was taken concurrently; retrying")
                requested = None
        else:
            raise ServiceError("Could not allocate a unique order number; please retry")

        if data.total_amount is not None and abs(order.total_amount - data.total_amount) > Decimal("0.01"):
            logger.warning(
                "Total amount mismatch",
                extra={'extra_fields': {'calculated': str(order.total_amount), 'provided': str(data.total_amount)}}
            )
        self.db.refresh(order)
        set_request_context(order_id=order.id)
        logger.info(
            f"Order {order.order_number} created",
            extra={'extra_fields': {
                'order_id': order.id,
                'items': len(order.items),
                'total': str(order.total_amount),
                'payment_method': order.payment_method,
            }}
        )
        return order

    # -- status changes ------------------------------------------------

    def transition(self, order_id: int, target: OrderStatus, actor: Actor, reason: Optional[str] = None) -> Order:
        """Apply a status change validated against the stored status."""
        order = self.get_for(order_id, actor, for_update=True)
        previous = order.status
        new_status = POLICY.authorize(actor, self.parties(order), previous, target)

        now = utcnow()
        order.status = new_status.value
        if new_status == OrderStatus.DELIVERED:
            order.actual_delivery = now
        elif new_status == OrderStatus.CANCELLED:
            order.cancellation_reason = reason or "Cancelled by user"
            order.cancelled_by = actor.id
            order.cancelled_at = now
        order.history.append(OrderStatusEvent(
            status=new_status.value,
            actor_id=actor.id,
            actor_role=actor.role.value,
            reason=reason,
            created_at=now,
        ))

        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentModification(order_id) from None
        self.db.refresh(order)
        logger.info(
            f"Order {order.order_number} status updated from {previous} to {new_status.value}",
            extra={'extra_fields': {'actor': actor.id, 'role': actor.role.value, 'reason': reason}}
        )
        return order

    def cancel(self, order_id: int, actor: Actor, reason: str) -> Order:
        return self.transition(order_id, OrderStatus.CANCELLED, actor, reason)

    # -- serialization -------------------------------------------------

    def to_raw(self, order: Order) -> dict:
        """Wire shape of an order; carries whichever address shape was stored."""
        raw = {
            "id": order.id,
            "orderNumber": order.order_number,
            "consumer": {"id": order.consumer_id, "name": order.consumer_name_snapshot},
            "items": [
                {
                    "product": {"id": item.product_id, "name": item.product_name_snapshot},
                    "farmer": {"id": item.farmer_id, "name": item.farmer_name_snapshot},
                    "quantity": item.quantity,
                    "price": _money(item.unit_price),
                }
                for item in order.items
            ],
            "subtotal": _money(order.subtotal),
            "taxAmount": _money(order.tax_amount),
            "totalAmount": _money(order.total_amount),
            "paymentMethod": order.payment_method,
            "status": order.status,
            "paymentStatus": order.payment_status,
            "paymentDetails": {
                "transactionId": order.transaction_id,
                "paymentDate": _iso(order.paid_at),
                "failureReason": order.payment_failure_reason,
            },
            "deliveryInstructions": order.delivery_instructions,
            "consumerNotes": order.consumer_notes,
            "createdAt": _iso(order.created_at),
            "paidAt": _iso(order.paid_at),
            "actualDelivery": _iso(order.actual_delivery),
            "cancellationReason": order.cancellation_reason,
            "cancelledBy": order.cancelled_by,
            "cancelledAt": _iso(order.cancelled_at),
            "statusHistory": [
                {
                    "status": event.status,
                    "updatedBy": event.actor_id,
                    "role": event.actor_role,
                    "reason": event.reason,
                    "updatedAt": _iso(event.created_at),
                }
                for event in order.history
            ],
            "version": order.version,
        }
        if order.shipping_address:
            raw["shippingAddress"] = order.shipping_address
        else:
            raw["deliveryAddress"] = order.delivery_address
        return raw
