from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from marketplace.infrastructure.db import get_db
from marketplace.application.analytics import OrderAnalyticsService
from marketplace.application.errors import ServiceError
from marketplace.application.service import OrderService
from marketplace.application.schemas import CancelRequest, OrderCreate, StatusUpdate
from marketplace.domain.errors import InvalidTransition, TransitionForbidden
from marketplace.domain.status import Actor, Role
from .deps import get_current_actor

router = APIRouter(prefix="/orders", tags=["orders"])


def raise_http(error: Exception):
    """Translate a domain/service failure into the matching HTTP response."""
    if isinstance(error, InvalidTransition):
        raise HTTPException(status_code=409, detail={"code": error.code, "message": error.message}) from error
    if isinstance(error, TransitionForbidden):
        raise HTTPException(status_code=403, detail=error.message) from error
    if isinstance(error, ServiceError):
        if error.status_code == 409:
            raise HTTPException(status_code=409, detail={"code": error.code, "message": error.message}) from error
        raise HTTPException(status_code=error.status_code, detail=error.message) from error
    raise error


@router.post("/", status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    service = OrderService(db)
    try:
        order = service.create(payload, actor)
    except ServiceError as e:
        raise_http(e)
    return service.to_raw(order)


@router.get("/consumer/my-orders")
def list_my_orders(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    """Orders placed by the calling consumer, newest first."""
    service = OrderService(db)
    return [service.to_raw(o) for o in service.list_for_consumer(actor)]


@router.get("/farmer/my-orders")
def list_farmer_orders(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    """Orders containing the calling farmer's products (all orders for admins)."""
    if actor.role not in (Role.FARMER, Role.ADMIN):
        raise HTTPException(status_code=403, detail="Farmer or admin role required")
    service = OrderService(db)
    return [service.to_raw(o) for o in service.list_for_farmer(actor)]


@router.get("/farmer/analytics")
def farmer_analytics(
    period: str = Query("month", description="Window to report on: day, week, month or year"),
    start_date: Optional[datetime] = Query(None, alias="startDate", description="Overrides the period start"),
    end_date: Optional[datetime] = Query(None, alias="endDate", description="Window end; defaults to now"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Order counts and revenue from the calling farmer's own line items; cancelled orders excluded."""
    try:
        return OrderAnalyticsService(db).farmer_summary(actor, period, start_date, end_date)
    except ServiceError as e:
        raise_http(e)


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    service = OrderService(db)
    try:
        order = service.get_for(order_id, actor)
    except ServiceError as e:
        raise_http(e)
    return service.to_raw(order)


@router.put("/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = OrderService(db)
    try:
        order = service.transition(order_id, payload.status, actor, payload.reason)
    except (ServiceError, InvalidTransition, TransitionForbidden) as e:
        raise_http(e)
    return service.to_raw(order)


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    payload: CancelRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    service = OrderService(db)
    try:
        order = service.cancel(order_id, actor, payload.reason)
    except (ServiceError, InvalidTransition, TransitionForbidden) as e:
        raise_http(e)
    return service.to_raw(order)
