"""
Session Domain Service.

Opens, claims, orders into and closes table sessions. Each mutating
operation runs in one transaction with the session row locked, then
schedules notifications for after the commit.
"""

from typing import Sequence

from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rest_api.models import Order, TableSession
from rest_api.repositories import MenuRepository, OrderRepository, SessionRepository
from rest_api.services.base_service import BaseService
from rest_api.services.domain import order_state, session_state
from rest_api.services.domain.order_builder import build_order_items, refresh_order_totals
from rest_api.services.events import Notifier, domain_event
from shared.config.constants import OrderStatus, TableStatus
from shared.config.logging import session_logger as logger
from shared.security.actor import Actor, require_actor
from shared.utils.exceptions import (
    InvalidStateError,
    NotFoundError,
    SessionConflictError,
    SessionNotFoundError,
)
from shared.utils.schemas import OrderItemRequest, TableSessionCheckOutput


class SessionService(BaseService):
    """
    Domain service for TableSession operations.

    Orchestrates the session aggregate (session_state), order creation
    and notification fan-out.
    """

    def __init__(
        self,
        db: Session,
        notifier: Notifier | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        super().__init__(db, notifier, background_tasks)
        self._sessions = SessionRepository(db)
        self._menu = MenuRepository(db)
        self._orders = OrderRepository(db)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_session(self, session_id: int) -> TableSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_active_session_by_table(self, table_id: int) -> TableSession:
        """The table's active session with orders, items and modifiers."""
        session = self._sessions.find_active_for_table(table_id)
        if session is None:
            raise NotFoundError("Active session for table", table_id)
        return session

    def check_table_session(self, table_id: int) -> TableSessionCheckOutput:
        session = self._sessions.find_active_row_for_table(table_id)
        if session is None:
            return TableSessionCheckOutput(has_active_session=False)
        return TableSessionCheckOutput(
            has_active_session=True,
            session_id=session.id,
            session_number=session.session_number,
        )

    def get_customer_sessions(self, customer_id: int, limit: int = 20) -> Sequence[TableSession]:
        return self._sessions.find_for_customer(customer_id, limit)

    # =========================================================================
    # Commands
    # =========================================================================

    def create_session(self, table_id: int, actor: Actor | None = None) -> TableSession:
        """
        Open a session at an active table.

        Raises:
            NotFoundError: table does not exist
            InvalidStateError: table is inactive
            SessionConflictError: the table already has an active session
        """
        table = self._sessions.get_table(table_id)
        if table is None:
            raise NotFoundError("Table", table_id)
        if table.status != TableStatus.ACTIVE:
            raise InvalidStateError("Table", table.status, [TableStatus.ACTIVE], table_id=table_id)

        if self._sessions.find_active_row_for_table(table_id) is not None:
            raise SessionConflictError(table_id)

        customer_id = actor.id if actor and actor.is_customer else None
        session = session_state.new_session(table_id, customer_id)
        try:
            with self._transaction():
                self._db.add(session)
        except IntegrityError:
            # Lost the race against a concurrent create on the same table
            raise SessionConflictError(table_id)

        logger.info(
            "Session created",
            session_id=session.id,
            table_id=table_id,
            customer_id=customer_id,
        )
        return self.get_session(session.id)

    def claim_session(self, session_id: int, actor: Actor | None) -> TableSession:
        """
        Bind the calling customer to the session.

        First writer wins; a session already owned by someone else is
        returned unchanged.
        """
        actor = require_actor(actor, "claim a session")

        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session_state.ensure_active(session)
            bound = session_state.claim(session, actor.id)

        logger.info(
            "Session claim",
            session_id=session_id,
            customer_id=actor.id,
            bound=bound,
        )
        return self.get_session(session_id)

    def create_order_in_session(
        self,
        session_id: int,
        items: Sequence[OrderItemRequest],
        actor: Actor | None = None,
    ) -> Order:
        """
        Place a new pending order in an active session.

        Prices and names are snapshotted from the menu; the order's and
        the session's totals are recomputed in the same transaction.
        """
        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session_state.ensure_accepts_orders(session)

            order = Order(
                table_id=session.table_id,
                customer_id=actor.id if actor and actor.is_customer else session.customer_id,
                order_number=order_state.generate_order_number(),
                status=OrderStatus.PENDING,
            )
            order.items = build_order_items(self._menu, items)
            refresh_order_totals(order)
            order.session = session
            self._db.add(order)

            session_state.recompute_totals(session)

        logger.info(
            "Order created",
            order_id=order.id,
            session_id=session_id,
            table_id=order.table_id,
            item_count=len(items),
            total_amount=str(order.total_amount),
        )

        self._emit(lambda: [domain_event.order_created(order, actor)])
        return order

    def complete_session(
        self,
        session_id: int,
        payment_method: str | None,
        transaction_id: str | None = None,
        actor: Actor | None = None,
    ) -> TableSession:
        """Close an active session paid out of band."""
        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            self._orders.lock_items(o.id for o in session.orders)
            closed = session_state.complete(session, payment_method, transaction_id)

        logger.info(
            "Session completed",
            session_id=session_id,
            payment_method=payment_method,
            orders_closed=closed,
            actor_id=actor.id if actor else None,
        )

        self._emit(lambda: [domain_event.session_completed(session, closed, actor)])
        return self.get_session(session_id)

    def cancel_session(
        self,
        session_id: int,
        reason: str | None = None,
        actor: Actor | None = None,
    ) -> TableSession:
        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session_state.cancel(session, reason)

        logger.info(
            "Session cancelled",
            session_id=session_id,
            actor_id=actor.id if actor else None,
        )
        return self.get_session(session_id)
