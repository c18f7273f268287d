from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from marketplace.infrastructure.db import get_db
from marketplace.application.errors import ServiceError
from marketplace.application.payment_service import (
    PAYMENT_METHODS,
    PaymentService,
    SimulatedGateway,
    get_payment_gateway,
)
from marketplace.application.schemas import PaymentMethodRead, PaymentSimulateRequest, PaymentVerification
from marketplace.domain.status import Actor
from .deps import get_current_actor
from .routes import raise_http

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/methods", response_model=list[PaymentMethodRead])
def list_payment_methods():
    return PAYMENT_METHODS


@router.post("/simulate")
async def simulate_payment(
    payload: PaymentSimulateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    gateway: SimulatedGateway = Depends(get_payment_gateway),
):
    """Run a simulated charge; a decline is reported with success=false, not as an error.

    Async so the gateway delay does not hold a worker thread; the session work
    inside the service is pushed to the threadpool.
    """
    service = PaymentService(db, gateway)
    try:
        order, verdict = await service.simulate(payload.order_id, payload.payment_method, actor)
    except ServiceError as e:
        raise_http(e)

    body = {
        "success": verdict.success,
        "message": verdict.message,
        "order": order,
    }
    if verdict.success:
        body["transactionId"] = verdict.transaction_id
    return body


@router.get("/verify/{order_id}", response_model=PaymentVerification)
def verify_payment(order_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    service = PaymentService(db, get_payment_gateway())
    try:
        return service.verify(order_id, actor)
    except ServiceError as e:
        raise_http(e)
