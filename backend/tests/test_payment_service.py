"""
Tests for the MoMo payment coordinator.

Gateway calls go through httpx.MockTransport (see FakeMomoGateway).
"""

import asyncio
from decimal import Decimal

import httpx
import pytest

from rest_api.models import Order, PaymentTransaction, TableSession
from rest_api.services.domain import OrderService, SessionService
from rest_api.services.payments import PaymentService, encode_extra_data
from shared.utils.exceptions import (
    AlreadyPaidError,
    AmountMismatchError,
    ExternalServiceError,
    ForbiddenError,
    InvalidStateError,
    PaymentAmountOutOfRangeError,
    SessionNotFoundError,
    SignatureInvalidError,
    ValidationError,
)
from tests.conftest import CUSTOMER, OTHER_CUSTOMER, make_item, signed_callback


def _flush(service) -> None:
    asyncio.run(service.background_tasks())


@pytest.fixture
def sessions(db_session, notifier):
    return SessionService(db_session, notifier)


@pytest.fixture
def service(db_session, momo_client, notifier):
    return PaymentService(db_session, momo_client, notifier)


@pytest.fixture
def owned_session(sessions, seed_table, seed_menu):
    """Customer-owned session with one pho x2 + Large order: 132,000 VND due."""
    session = sessions.create_session(seed_table.id, CUSTOMER)
    sessions.create_order_in_session(
        session.id, [make_item(seed_menu["pho"].id, 2, [seed_menu["large"].id])], CUSTOMER
    )
    return session


@pytest.fixture
def pending_session(service, owned_session, db_session):
    asyncio.run(service.initiate_payment(owned_session.id, CUSTOMER))
    return db_session.get(TableSession, owned_session.id)


def _transactions(db_session, session_id):
    return (
        db_session.query(PaymentTransaction)
        .filter(PaymentTransaction.session_id == session_id)
        .order_by(PaymentTransaction.id)
        .all()
    )


class TestInitiatePayment:
    @pytest.mark.asyncio
    async def test_initiate_marks_pending_and_records_attempt(self, service, owned_session, db_session, fake_momo):
        result = await service.initiate_payment(owned_session.id, CUSTOMER)

        assert result.amount == Decimal("132000.00")
        assert result.pay_url == "https://test-payment.momo.vn/pay/abc"
        assert result.request_id.startswith("MOMO_")
        assert result.order_id.startswith("ORDER_")

        session = db_session.get(TableSession, owned_session.id)
        assert session.status == "active"
        assert session.payment_status == "pending"
        assert session.payment_method == "momo"
        assert session.momo_order_id == result.order_id
        assert session.momo_payment_amount == Decimal("132000.00")

        rows = _transactions(db_session, owned_session.id)
        assert [r.status for r in rows] == ["pending"]
        assert rows[0].request_id == result.request_id

        body = fake_momo.last_body
        assert body["amount"] == "132000"
        assert body["requestType"] == "captureWallet"
        assert body["signature"] == service._gateway.build_create_signature(body)

    @pytest.mark.asyncio
    async def test_anonymous_caller_forbidden(self, service, owned_session):
        with pytest.raises(ForbiddenError):
            await service.initiate_payment(owned_session.id, None)

    @pytest.mark.asyncio
    async def test_other_customer_forbidden(self, service, owned_session):
        with pytest.raises(ForbiddenError):
            await service.initiate_payment(owned_session.id, OTHER_CUSTOMER)

    @pytest.mark.asyncio
    async def test_unknown_session(self, service, db_session):
        with pytest.raises(SessionNotFoundError):
            await service.initiate_payment(404, CUSTOMER)

    @pytest.mark.asyncio
    async def test_session_without_orders(self, service, sessions, seed_table):
        session = sessions.create_session(seed_table.id, CUSTOMER)

        with pytest.raises(ValidationError):
            await service.initiate_payment(session.id, CUSTOMER)

    @pytest.mark.asyncio
    async def test_only_rejected_orders(self, service, owned_session, db_session):
        for order in db_session.query(Order).all():
            order.status = "rejected"
            order.rejection_reason = "no stock"
        db_session.commit()

        with pytest.raises(ValidationError):
            await service.initiate_payment(owned_session.id, CUSTOMER)

    @pytest.mark.asyncio
    async def test_amount_above_gateway_maximum(self, service, owned_session, db_session):
        db_session.query(Order).first().subtotal = Decimal("60000000.00")
        db_session.commit()

        with pytest.raises(PaymentAmountOutOfRangeError):
            await service.initiate_payment(owned_session.id, CUSTOMER)

    @pytest.mark.asyncio
    async def test_cancelled_session(self, service, sessions, owned_session):
        sessions.cancel_session(owned_session.id)

        with pytest.raises(InvalidStateError):
            await service.initiate_payment(owned_session.id, CUSTOMER)

    @pytest.mark.asyncio
    async def test_gateway_error_leaves_no_trace(self, service, owned_session, db_session, fake_momo):
        fake_momo.create_response = {"resultCode": 1005, "message": "Transaction failed"}

        with pytest.raises(ExternalServiceError):
            await service.initiate_payment(owned_session.id, CUSTOMER)

        session = db_session.get(TableSession, owned_session.id)
        db_session.refresh(session)
        assert session.payment_status == "unpaid"
        assert session.momo_order_id is None
        assert _transactions(db_session, owned_session.id) == []

    @pytest.mark.asyncio
    async def test_gateway_timeout_leaves_no_trace(self, service, owned_session, db_session, fake_momo):
        fake_momo.error = httpx.ReadTimeout("gateway too slow")

        with pytest.raises(ExternalServiceError) as exc_info:
            await service.initiate_payment(owned_session.id, CUSTOMER)

        assert exc_info.value.status_code == 502
        session = db_session.get(TableSession, owned_session.id)
        db_session.refresh(session)
        assert session.payment_status == "unpaid"


class TestCallback:
    def test_success_settles_session(self, service, pending_session, db_session, momo_client, notifier):
        payload = signed_callback(momo_client, pending_session)

        result = service.process_callback(payload)

        assert result.success is True
        assert result.duplicate is False
        session = db_session.get(TableSession, pending_session.id)
        assert session.status == "completed"
        assert session.payment_status == "paid"
        assert session.payment_method == "momo"
        assert session.momo_transaction_id == "4088878653"
        assert session.payment_transaction_id == "4088878653"
        assert session.momo_payment_time is not None
        assert {o.status for o in db_session.query(Order).all()} == {"completed"}

        statuses = [r.status for r in _transactions(db_session, pending_session.id)]
        assert statuses == ["pending", "completed"]

        _flush(service)
        assert notifier.types[-1] == "SESSION_COMPLETED"

    def test_duplicate_callback_is_acknowledged_once(self, service, pending_session, db_session, momo_client):
        payload = signed_callback(momo_client, pending_session)
        service.process_callback(payload)

        again = service.process_callback(payload)

        assert again.duplicate is True
        assert again.payment_status == "paid"
        assert len(_transactions(db_session, pending_session.id)) == 2

    def test_failed_payment(self, service, pending_session, db_session, momo_client, notifier):
        payload = signed_callback(momo_client, pending_session, resultCode=1006, message="")

        result = service.process_callback(payload)

        assert result.payment_status == "failed"
        session = db_session.get(TableSession, pending_session.id)
        assert session.status == "active"
        assert session.momo_error_message == "User rejected transaction"
        assert _transactions(db_session, pending_session.id)[-1].status == "failed"
        _flush(service)
        assert "SESSION_COMPLETED" not in notifier.types

    def test_bad_signature_writes_nothing(self, service, pending_session, db_session, momo_client):
        payload = signed_callback(momo_client, pending_session)
        payload["amount"] = 1

        with pytest.raises(SignatureInvalidError):
            service.process_callback(payload)

        assert db_session.get(TableSession, pending_session.id).payment_status == "pending"
        assert len(_transactions(db_session, pending_session.id)) == 1

    def test_missing_signature(self, service, pending_session, momo_client):
        payload = signed_callback(momo_client, pending_session)
        del payload["signature"]

        with pytest.raises(SignatureInvalidError):
            service.process_callback(payload)

    def test_amount_mismatch(self, service, pending_session, db_session, momo_client):
        payload = signed_callback(momo_client, pending_session, amount=1000)

        with pytest.raises(AmountMismatchError):
            service.process_callback(payload)

        session = db_session.get(TableSession, pending_session.id)
        db_session.refresh(session)
        assert session.payment_status == "pending"
        assert len(_transactions(db_session, pending_session.id)) == 1

    def test_undecodable_extra_data(self, service, pending_session, momo_client):
        payload = signed_callback(momo_client, pending_session, extraData="%%%not-base64")

        with pytest.raises(ValidationError):
            service.process_callback(payload)

    def test_extra_data_without_session(self, service, pending_session, momo_client):
        payload = signed_callback(momo_client, pending_session, extraData=encode_extra_data({"userId": 1}))

        with pytest.raises(ValidationError):
            service.process_callback(payload)

    def test_unknown_session(self, service, pending_session, momo_client):
        payload = signed_callback(
            momo_client, pending_session, extraData=encode_extra_data({"sessionId": 9999})
        )

        with pytest.raises(SessionNotFoundError):
            service.process_callback(payload)


class TestStatusAndCancel:
    def test_payment_status_for_owner(self, service, pending_session):
        status = service.get_payment_status(pending_session.id, CUSTOMER)

        assert status.payment_status == "pending"
        assert status.total_amount == Decimal("132000.00")
        assert status.momo_order_id == pending_session.momo_order_id

    def test_payment_status_for_stranger(self, service, pending_session):
        with pytest.raises(ForbiddenError):
            service.get_payment_status(pending_session.id, OTHER_CUSTOMER)

    def test_cancel_payment(self, service, pending_session, db_session):
        session = service.cancel_payment(pending_session.id, "changed my mind", CUSTOMER)

        assert session.status == "cancelled"
        assert session.payment_status == "failed"
        assert session.momo_error_message == "Cancelled by user: changed my mind"
        assert _transactions(db_session, pending_session.id)[-1].status == "cancelled"

    def test_cancel_paid_session(self, service, pending_session, momo_client):
        service.process_callback(signed_callback(momo_client, pending_session))

        with pytest.raises(AlreadyPaidError):
            service.cancel_payment(pending_session.id, None, CUSTOMER)

    def test_initiate_after_paid(self, service, pending_session, momo_client):
        service.process_callback(signed_callback(momo_client, pending_session))

        with pytest.raises((AlreadyPaidError, InvalidStateError)):
            asyncio.run(service.initiate_payment(pending_session.id, CUSTOMER))

    def test_query_gateway_status(self, service, pending_session, fake_momo):
        data = asyncio.run(service.query_gateway_status(pending_session.id, CUSTOMER))

        assert data["result_code"] == 0
        assert data["trans_id"] == 4088878653
        assert fake_momo.requests[-1]["path"] == "/v2/gateway/api/query"

    @pytest.mark.asyncio
    async def test_query_without_payment(self, service, owned_session):
        with pytest.raises(ValidationError):
            await service.query_gateway_status(owned_session.id, CUSTOMER)

    def test_list_transactions_oldest_first(self, service, pending_session):
        service.cancel_payment(pending_session.id, None, CUSTOMER)

        rows = service.list_transactions(pending_session.id)

        assert [r.status for r in rows] == ["pending", "cancelled"]


class TestPendingPaymentFreezesBill:
    def test_no_new_orders_while_pending(self, sessions, pending_session, seed_menu, db_session):
        with pytest.raises(InvalidStateError):
            sessions.create_order_in_session(
                pending_session.id, [make_item(seed_menu["coffee"].id)], CUSTOMER
            )

        session = db_session.get(TableSession, pending_session.id)
        assert session.total_amount == Decimal("132000.00")
        assert db_session.query(Order).count() == 1

    def test_no_added_items_while_pending(self, db_session, notifier, pending_session, seed_menu):
        orders = OrderService(db_session, notifier)
        order = db_session.query(Order).one()

        with pytest.raises(InvalidStateError):
            orders.add_items_to_order(order.id, [make_item(seed_menu["coffee"].id)])

        assert len(orders.get_order(order.id).items) == 1

    def test_cash_completion_refused_while_pending(self, sessions, pending_session, db_session):
        with pytest.raises(InvalidStateError):
            sessions.complete_session(pending_session.id, "cash")

        session = db_session.get(TableSession, pending_session.id)
        assert session.status == "active"
        assert session.payment_status == "pending"

    def test_orders_reopen_after_failed_callback(self, sessions, service, pending_session, momo_client, seed_menu):
        service.process_callback(signed_callback(momo_client, pending_session, resultCode=1006))

        order = sessions.create_order_in_session(
            pending_session.id, [make_item(seed_menu["coffee"].id)], CUSTOMER
        )

        assert order.status == "pending"


class TestCallbackOnClosedSession:
    def test_success_after_cancel_is_recorded_not_applied(
        self, service, pending_session, db_session, momo_client, notifier
    ):
        service.cancel_payment(pending_session.id, "left the table", CUSTOMER)
        _flush(service)
        notifier.events.clear()

        result = service.process_callback(signed_callback(momo_client, pending_session))

        assert result.success is True
        session = db_session.get(TableSession, pending_session.id)
        assert session.status == "cancelled"
        assert session.payment_status == "failed"
        assert session.momo_transaction_id == "4088878653"
        assert session.momo_payment_time is not None
        assert [r.status for r in _transactions(db_session, pending_session.id)] == [
            "pending",
            "cancelled",
            "completed",
        ]
        _flush(service)
        assert notifier.types == []

    def test_late_success_after_cash_completion(
        self, service, sessions, pending_session, db_session, momo_client
    ):
        service.process_callback(
            signed_callback(momo_client, pending_session, resultCode=1006, transId=1001)
        )
        sessions.complete_session(pending_session.id, "cash")

        service.process_callback(signed_callback(momo_client, pending_session, transId=1002))

        session = db_session.get(TableSession, pending_session.id)
        assert session.status == "completed"
        assert session.payment_method == "cash"
        assert session.momo_transaction_id == "1002"
        assert [r.status for r in _transactions(db_session, pending_session.id)] == [
            "pending",
            "failed",
            "completed",
        ]

    def test_repeat_of_recorded_late_callback_is_duplicate(
        self, service, pending_session, momo_client
    ):
        service.cancel_payment(pending_session.id, None, CUSTOMER)
        payload = signed_callback(momo_client, pending_session)
        service.process_callback(payload)

        assert service.process_callback(payload).duplicate is True
