"""Sales figures for a farmer, computed from the line items they sold."""

from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from marketplace.domain.models import Order, OrderItem
from marketplace.domain.pricing import line_total, round_money
from marketplace.domain.status import Actor, OrderStatus, Role
from shared.core import get_logger
from .errors import OrderAccessDenied, ServiceError

logger = get_logger(__name__)

PERIOD_WINDOWS = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}
DEFAULT_PERIOD = "month"
POPULAR_PRODUCTS_LIMIT = 10

# Cancelled orders never count towards revenue
COUNTED_STATUSES = [s for s in OrderStatus if s != OrderStatus.CANCELLED]
PENDING_STATUSES = (OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def date_range(period: str, start: Optional[datetime] = None, end: Optional[datetime] = None,
               now: Optional[datetime] = None):
    """Window ending at ``end`` (default now) and reaching back one ``period`` unless ``start`` is given."""
    if period not in PERIOD_WINDOWS:
        raise ServiceError(f"Unknown period '{period}'; use one of {', '.join(PERIOD_WINDOWS)}")
    end = _as_utc(end) if end else (now or datetime.now(timezone.utc))
    start = _as_utc(start) if start else end - PERIOD_WINDOWS[period]
    if start > end:
        raise ServiceError("startDate must not be after endDate")
    return start, end


class OrderAnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def _orders_in_range(self, farmer_id: str, start: datetime, end: datetime) -> List[Order]:
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(
                Order.items.any(OrderItem.farmer_id == farmer_id),
                Order.status != OrderStatus.CANCELLED.value,
                Order.created_at >= start,
                Order.created_at <= end,
            )
            .order_by(Order.created_at)
            .all()
        )

    def farmer_summary(
        self,
        actor: Actor,
        period: str = DEFAULT_PERIOD,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        if actor.role != Role.FARMER:
            raise OrderAccessDenied("Only farmers have sales analytics")
        start, end = date_range(period, start, end)
        orders = self._orders_in_range(actor.id, start, end)

        total_revenue = Decimal("0")
        by_status: Dict[str, int] = {status.value: 0 for status in COUNTED_STATUSES}
        products: Dict[str, dict] = {}
        trend: Dict[str, dict] = defaultdict(lambda: {"revenue": Decimal("0"), "orders": set()})

        for order in orders:
            by_status[order.status] = by_status.get(order.status, 0) + 1
            day = order.created_at.date().isoformat()
            for item in order.items:
                if item.farmer_id != actor.id:
                    continue
                revenue = line_total(item.unit_price, item.quantity)
                total_revenue += revenue

                product = products.setdefault(item.product_id, {
                    "name": item.product_name_snapshot,
                    "quantity": 0,
                    "revenue": Decimal("0"),
                    "orders": set(),
                })
                product["quantity"] += item.quantity
                product["revenue"] += revenue
                product["orders"].add(order.id)

                trend[day]["revenue"] += revenue
                trend[day]["orders"].add(order.id)

        total_orders = len(orders)
        popular = sorted(products.items(), key=lambda entry: (-entry[1]["quantity"], entry[0]))
        summary = {
            "period": period,
            "dateRange": {"startDate": start.isoformat(), "endDate": end.isoformat()},
            "totalRevenue": float(round_money(total_revenue)),
            "totalOrders": total_orders,
            "completedOrders": by_status[OrderStatus.DELIVERED.value],
            "pendingOrders": sum(by_status[status] for status in PENDING_STATUSES),
            "averageOrderValue": float(round_money(total_revenue / total_orders)) if total_orders else 0.0,
            "ordersByStatus": by_status,
            "popularProducts": [
                {
                    "productId": product_id,
                    "productName": data["name"],
                    "totalQuantity": data["quantity"],
                    "totalRevenue": float(round_money(data["revenue"])),
                    "orderCount": len(data["orders"]),
                }
                for product_id, data in popular[:POPULAR_PRODUCTS_LIMIT]
            ],
            "revenueTrend": [
                {"date": day, "revenue": float(round_money(data["revenue"])), "orderCount": len(data["orders"])}
                for day, data in sorted(trend.items())
            ],
            "calculatedAt": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(
            f"Analytics for farmer {actor.id}: {summary['totalRevenue']} from {total_orders} orders",
            extra={'extra_fields': {'period': period, 'start': summary['dateRange']['startDate']}}
        )
        return summary
