"""
Pytest configuration and fixtures for backend tests.
"""

import json
from decimal import Decimal
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.main import app
from rest_api.models import Base, MenuItem, ModifierGroup, ModifierOption, Table
from rest_api.services.events import Notifier, get_notifier
from rest_api.services.payments import (
    CircuitBreaker,
    CircuitBreakerConfig,
    MomoClient,
    encode_extra_data,
    get_momo_client,
)
from shared.infrastructure.db import get_db
from shared.infrastructure.events import Event
from shared.security.actor import Actor
from shared.security.rate_limit import limiter
from shared.utils.schemas import ModifierSelection, OrderItemRequest


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CUSTOMER = Actor(id=501, role="customer")
OTHER_CUSTOMER = Actor(id=502, role="customer")
WAITER = Actor(id=9, role="waiter")


# =============================================================================
# Test doubles
# =============================================================================


class RecordingNotifier(Notifier):
    """Keeps every published event in memory."""

    def __init__(self, fail: bool = False):
        self.events: list[Event] = []
        self.fail = fail

    async def publish(self, event: Event) -> None:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]


class FakeMomoGateway:
    """
    httpx MockTransport handler standing in for the MoMo sandbox.

    Tests tweak ``create_response`` / ``query_response`` or set ``error``
    to an httpx exception to simulate transport failures.
    """

    def __init__(self):
        self.requests: list[dict[str, Any]] = []
        self.create_response: dict[str, Any] = {
            "resultCode": 0,
            "message": "Successful.",
            "payUrl": "https://test-payment.momo.vn/pay/abc",
            "deeplink": "momo://app?action=pay",
            "qrCodeUrl": "https://test-payment.momo.vn/qr/abc",
        }
        self.query_response: dict[str, Any] = {
            "resultCode": 0,
            "message": "Successful.",
            "transId": 4088878653,
            "amount": 132000,
        }
        self.status_code = 200
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append({"path": request.url.path, "body": body})
        if self.error is not None:
            raise self.error
        if request.url.path.endswith("/query"):
            return httpx.Response(self.status_code, json=self.query_response)
        return httpx.Response(self.status_code, json=self.create_response)

    @property
    def last_body(self) -> dict[str, Any]:
        return self.requests[-1]["body"]


def make_item(menu_item_id: int, quantity: int = 1, option_ids=(), notes: str | None = None) -> OrderItemRequest:
    """Build an order line request the way the API would parse it."""
    return OrderItemRequest(
        menu_item_id=menu_item_id,
        quantity=quantity,
        special_instructions=notes,
        modifiers=[ModifierSelection(option_id=o) for o in option_ids],
    )


def signed_callback(gateway: MomoClient, session, **overrides) -> dict[str, Any]:
    """A well-formed IPN payload for ``session``, signed with the test secret."""
    payload: dict[str, Any] = {
        "partnerCode": "MOMO",
        "orderId": session.momo_order_id,
        "requestId": session.momo_request_id,
        "amount": int(session.momo_payment_amount),
        "orderInfo": f"Payment for session {session.session_number}",
        "orderType": "momo_wallet",
        "transId": 4088878653,
        "resultCode": 0,
        "message": "Successful.",
        "payType": "qr",
        "responseTime": 1721720663942,
        "extraData": encode_extra_data({"sessionId": session.id, "userId": session.customer_id}),
    }
    payload.update(overrides)
    payload["signature"] = gateway.build_callback_signature(payload)
    return payload


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_momo():
    return FakeMomoGateway()


@pytest.fixture
def breaker():
    """A private breaker so failures in one test never open the circuit for another."""
    return CircuitBreaker(CircuitBreakerConfig(name="momo-test", failure_threshold=3, timeout_seconds=60.0))


@pytest.fixture
def momo_client(fake_momo, breaker):
    return MomoClient(breaker=breaker, transport=httpx.MockTransport(fake_momo))


@pytest.fixture(scope="function")
def client(db_session, notifier, momo_client):
    """
    Create a test client with database, notifier and gateway overrides.

    Used without the context manager so the lifespan (schema creation on
    the configured database) does not run.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_momo_client] = lambda: momo_client
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()
    limiter.enabled = True


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_table(db_session):
    table = Table(table_number="T1", location="Main hall", capacity=4, status="active")
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def seed_inactive_table(db_session):
    table = Table(table_number="T9", capacity=2, status="inactive")
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def seed_menu(db_session):
    """
    Menu used across tests (VND prices):
    - pho: 50,000
    - coffee: 25,000
    - sold_out: 40,000, not orderable
    - size group with large (+10,000, active) and jumbo (+20,000, inactive)
    """
    pho = MenuItem(name="Pho Bo", description="Beef noodle soup", price=Decimal("50000.00"))
    coffee = MenuItem(name="Iced Coffee", price=Decimal("25000.00"))
    sold_out = MenuItem(name="Banh Xeo", price=Decimal("40000.00"), status="sold_out")
    size = ModifierGroup(name="Size", selection_type="single")
    db_session.add_all([pho, coffee, sold_out, size])
    db_session.flush()

    large = ModifierOption(group_id=size.id, name="Large", price_adjustment=Decimal("10000.00"))
    jumbo = ModifierOption(
        group_id=size.id, name="Jumbo", price_adjustment=Decimal("20000.00"), status="inactive"
    )
    db_session.add_all([large, jumbo])
    db_session.commit()

    return {
        "pho": pho,
        "coffee": coffee,
        "sold_out": sold_out,
        "size": size,
        "large": large,
        "jumbo": jumbo,
    }
