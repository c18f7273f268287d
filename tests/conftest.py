"""Shared fixtures: in-memory SQLite, no payment delay, signed bearer tokens."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYMENT_DELAY_MIN_SECONDS"] = "0"
os.environ["PAYMENT_DELAY_MAX_SECONDS"] = "0"
os.environ["JWT_SECRET"] = "test-secret"

import httpx
import pytest
from fastapi.testclient import TestClient

from marketplace.application.payment_service import SimulatedGateway, get_payment_gateway
from marketplace.auth_local import create_access_token
from marketplace.client import ClientSettings, MarketplaceAPI
from marketplace.domain.models import Base
from marketplace.domain.status import PaymentMethod, Role
from marketplace.infrastructure.db import engine
from marketplace.main import app

USERS = {
    "consumer": ("c-1", Role.CONSUMER, "Jane Doe"),
    "other_consumer": ("c-2", Role.CONSUMER, "Sam"),
    "farmer": ("f-1", Role.FARMER, "Green Acres"),
    "other_farmer": ("f-2", Role.FARMER, "Hill Farm"),
    "admin": ("a-1", Role.ADMIN, "Admin"),
}


@pytest.fixture
def reset_db():
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def tokens():
    return {key: create_access_token(uid, role, name) for key, (uid, role, name) in USERS.items()}


@pytest.fixture
def headers(tokens):
    return {key: {"Authorization": f"Bearer {token}"} for key, token in tokens.items()}


@pytest.fixture
def client(reset_db):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def gateway():
    """Swap the payment gateway for one with a fixed approval rate and no delay."""
    def install(success_rate: float = 1.0) -> SimulatedGateway:
        simulated = SimulatedGateway(
            success_rates={method: success_rate for method in PaymentMethod},
            delay_range=(0.0, 0.0),
        )
        app.dependency_overrides[get_payment_gateway] = lambda: simulated
        return simulated

    install()
    yield install
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def order_payload():
    def build(**overrides):
        payload = {
            "items": [
                {"product": {"id": "p-1", "name": "Tomatoes"}, "farmer": {"id": "f-1", "name": "Green Acres"},
                 "quantity": 2, "price": 10.0},
                {"product": "p-2", "farmer": "f-1", "quantity": 1, "price": 5.0},
            ],
            "totalAmount": 27.5,
            "deliveryAddress": {"address": "12 Elm", "city": "Springfield", "state": "IL", "zipCode": "62701"},
            "paymentMethod": "card",
            "orderNumber": "ORD-1700000000000-42",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def client_settings():
    return ClientSettings(BASE_URL="http://testserver", PACING_ENABLED=False, TOKEN=None)


@pytest.fixture
def asgi_api(reset_db, tokens, client_settings):
    """Build MarketplaceAPI instances that talk to the app in-process."""
    def build(user: str = "consumer") -> MarketplaceAPI:
        return MarketplaceAPI(
            token=tokens[user],
            settings=client_settings,
            transport=httpx.ASGITransport(app=app),
        )

    return build


@pytest.fixture
def mock_api(client_settings):
    """MarketplaceAPI backed by an httpx.MockTransport handler."""
    def build(handler) -> MarketplaceAPI:
        return MarketplaceAPI(token="test-token", settings=client_settings, transport=httpx.MockTransport(handler))

    return build


def raw_order(**overrides):
    """Order record as the service returns it."""
    order = {
        "id": 7,
        "orderNumber": "ORD-SERVER-7",
        "consumer": {"id": "c-1", "name": "Jane Doe"},
        "items": [
            {"product": {"id": "p-1", "name": "Tomatoes"}, "farmer": {"id": "f-1", "name": "Green Acres"},
             "quantity": 2, "price": 10.0},
        ],
        "subtotal": 20.0,
        "taxAmount": 2.0,
        "totalAmount": 22.0,
        "paymentMethod": "card",
        "status": "pending",
        "paymentStatus": "pending",
        "paymentDetails": {"transactionId": None, "paymentDate": None, "failureReason": None},
        "deliveryAddress": {"address": "12 Elm", "city": "Springfield", "state": "IL", "zipCode": "62701"},
        "statusHistory": [],
        "version": 1,
    }
    order.update(overrides)
    return order


@pytest.fixture
def order_record():
    return raw_order
