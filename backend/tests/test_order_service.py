"""
Tests for OrderService: waiter decisions, kitchen status moves, item
status and adding lines to an open order.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import text

from rest_api.models import TableSession
from rest_api.services.domain import OrderService, SessionService
from shared.utils.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from tests.conftest import WAITER, make_item


def _flush(service) -> None:
    asyncio.run(service.background_tasks())


@pytest.fixture
def sessions(db_session, notifier):
    return SessionService(db_session, notifier)


@pytest.fixture
def service(db_session, notifier):
    return OrderService(db_session, notifier)


@pytest.fixture
def table_session(sessions, seed_table):
    return sessions.create_session(seed_table.id)


@pytest.fixture
def order(sessions, table_session, seed_menu):
    return sessions.create_order_in_session(
        table_session.id,
        [make_item(seed_menu["pho"].id, 2), make_item(seed_menu["coffee"].id, 1)],
    )


class TestQueries:
    def test_get_order_loads_items(self, service, order):
        loaded = service.get_order(order.id)

        assert len(loaded.items) == 2

    def test_get_unknown_order(self, service, db_session):
        with pytest.raises(OrderNotFoundError):
            service.get_order(999)

    def test_active_order_by_table(self, service, order, seed_table):
        assert service.get_active_order_by_table(seed_table.id).id == order.id

    def test_no_active_order_by_table(self, service, seed_table):
        with pytest.raises(NotFoundError):
            service.get_active_order_by_table(seed_table.id)

    def test_list_filters_by_status(self, service, order):
        assert [o.id for o in service.list_orders(["pending"])] == [order.id]
        assert service.list_orders(["ready", "served"]) == []

    def test_list_rejects_unknown_status(self, service, db_session):
        with pytest.raises(ValidationError):
            service.list_orders(["cooking"])

    def test_list_filters_by_table_and_day(self, service, order, seed_table):
        today = datetime.now(timezone.utc).date()

        assert len(service.list_orders(table_id=seed_table.id, created_on=today)) == 1
        assert service.list_orders(created_on=today - timedelta(days=3)) == []
        assert service.list_orders(table_id=seed_table.id + 100) == []


class TestAcceptReject:
    def test_accept_confirms_items(self, service, order, notifier):
        accepted = service.accept_order(order.id, WAITER)

        assert accepted.status == "accepted"
        assert accepted.waiter_id == WAITER.id
        assert accepted.accepted_at is not None
        assert {i.status for i in accepted.items} == {"confirmed"}

        _flush(service)
        assert notifier.types[-1] == "ORDER_STATUS_CHANGED"
        assert notifier.events[-1].entity["previous_status"] == "pending"

    def test_accept_twice(self, service, order):
        service.accept_order(order.id)

        with pytest.raises(InvalidTransitionError):
            service.accept_order(order.id)

    def test_reject_drops_order_from_session_total(self, service, order, table_session, db_session, notifier):
        before = db_session.get(TableSession, table_session.id).total_amount
        assert before == Decimal("137500.00")

        rejected = service.reject_order(order.id, "Kitchen closed", WAITER)

        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "Kitchen closed"
        session = db_session.get(TableSession, table_session.id)
        db_session.refresh(session)
        assert session.total_amount == Decimal("0.00")

        _flush(service)
        assert "ORDER_REJECTED" in notifier.types

    def test_reject_without_reason(self, service, order):
        with pytest.raises(ValidationError):
            service.reject_order(order.id, "")

    def test_reject_accepted_order(self, service, order):
        service.accept_order(order.id)

        with pytest.raises(InvalidTransitionError):
            service.reject_order(order.id, "too late")

    def test_accept_keeps_line_cancelled_behind_its_back(self, service, order, db_session):
        cancelled_id = order.items[0].id
        # Another writer cancels the line; the loaded order still says pending
        db_session.execute(
            text("UPDATE order_item SET status = 'cancelled' WHERE id = :id"),
            {"id": cancelled_id},
        )

        accepted = service.accept_order(order.id, WAITER)

        statuses = {i.id: i.status for i in accepted.items}
        assert statuses[cancelled_id] == "cancelled"
        assert sorted(statuses.values()) == ["cancelled", "confirmed"]

    def test_accept_is_atomic_when_commit_fails(self, service, order, db_session, notifier):
        def flush_then_fail(db):
            db.flush()
            raise RuntimeError("connection dropped during commit")

        with patch("rest_api.services.base_service.safe_commit", side_effect=flush_then_fail):
            with pytest.raises(RuntimeError):
                service.accept_order(order.id, WAITER)

        reloaded = service.get_order(order.id)
        assert reloaded.status == "pending"
        assert reloaded.waiter_id is None
        assert {i.status for i in reloaded.items} == {"pending"}
        _flush(service)
        assert "ORDER_STATUS_CHANGED" not in notifier.types


class TestUpdateStatus:
    def test_pending_cannot_jump_to_preparing(self, service, order):
        with pytest.raises(InvalidTransitionError):
            service.update_order_status(order.id, "preparing")

        assert service.get_order(order.id).status == "pending"

    def test_unknown_status(self, service, order):
        with pytest.raises(ValidationError):
            service.update_order_status(order.id, "cooking")

    def test_ready_notifies_waiters(self, service, order, notifier):
        service.accept_order(order.id)
        service.update_order_status(order.id, "preparing")
        service.update_order_status(order.id, "ready")
        _flush(service)

        assert notifier.types[-2:] == ["ORDER_STATUS_CHANGED", "ORDER_READY"]

    def test_complete_order_requires_served(self, service, order):
        service.accept_order(order.id)

        with pytest.raises(InvalidTransitionError):
            service.complete_order(order.id)

    def test_complete_after_served(self, service, order):
        service.accept_order(order.id)
        for status in ["preparing", "ready", "served"]:
            service.update_order_status(order.id, status)

        completed = service.complete_order(order.id)

        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert {i.status for i in completed.items} == {"served"}

    def test_session_completion_keeps_line_cancelled_behind_its_back(
        self, service, sessions, order, table_session, db_session
    ):
        cancelled_id = order.items[1].id
        db_session.execute(
            text("UPDATE order_item SET status = 'cancelled' WHERE id = :id"),
            {"id": cancelled_id},
        )

        sessions.complete_session(table_session.id, "cash")

        statuses = {i.id: i.status for i in service.get_order(order.id).items}
        assert statuses[cancelled_id] == "cancelled"
        assert sorted(statuses.values()) == ["cancelled", "served"]


class TestItemStatus:
    def test_item_moves_forward(self, service, order, notifier):
        service.accept_order(order.id)
        item_id = order.items[0].id

        item = service.update_order_item_status(item_id, "preparing", WAITER)

        assert item.status == "preparing"
        _flush(service)
        assert notifier.types[-1] == "ITEM_STATUS_CHANGED"
        assert notifier.events[-1].entity["item_id"] == item_id

    def test_item_cannot_skip(self, service, order):
        with pytest.raises(InvalidTransitionError):
            service.update_order_item_status(order.items[0].id, "ready")

    def test_unknown_item(self, service, db_session):
        with pytest.raises(NotFoundError):
            service.update_order_item_status(999, "confirmed")


class TestAddItems:
    def test_add_items_updates_order_and_session(self, service, order, table_session, seed_menu, db_session):
        updated = service.add_items_to_order(
            order.id, [make_item(seed_menu["coffee"].id, 2, [seed_menu["large"].id])]
        )

        assert len(updated.items) == 3
        assert updated.subtotal == Decimal("195000.00")
        session = db_session.get(TableSession, table_session.id)
        db_session.refresh(session)
        assert session.subtotal == Decimal("195000.00")

    def test_add_items_to_completed_order(self, service, sessions, order, table_session, seed_menu):
        sessions.complete_session(table_session.id, "cash")

        with pytest.raises(InvalidStateError):
            service.add_items_to_order(order.id, [make_item(seed_menu["coffee"].id)])

    def test_add_items_after_session_cancelled(self, service, sessions, order, table_session, seed_menu):
        sessions.cancel_session(table_session.id)

        with pytest.raises(InvalidStateError):
            service.add_items_to_order(order.id, [make_item(seed_menu["coffee"].id)])
