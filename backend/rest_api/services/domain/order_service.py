"""
Order Domain Service.

Staff-facing order lifecycle: accept, reject, advance, complete and
per-item kitchen progress. Every change is validated against the order
or item state machine before anything is written.
"""

from datetime import date
from typing import Sequence

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from rest_api.models import Order, OrderItem
from rest_api.repositories import MenuRepository, OrderFilters, OrderRepository, SessionRepository
from rest_api.services.base_service import BaseService
from rest_api.services.domain import order_state, session_state
from rest_api.services.domain.order_builder import build_order_items, refresh_order_totals
from rest_api.services.events import Notifier, domain_event
from shared.config.constants import Limits, OrderStatus
from shared.config.logging import order_logger as logger
from shared.security.actor import Actor
from shared.utils.exceptions import NotFoundError, OrderNotFoundError, ValidationError
from shared.utils.schemas import OrderItemRequest


class OrderService(BaseService):
    """Domain service for Order and OrderItem operations."""

    def __init__(
        self,
        db: Session,
        notifier: Notifier | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        super().__init__(db, notifier, background_tasks)
        self._orders = OrderRepository(db)
        self._sessions = SessionRepository(db)
        self._menu = MenuRepository(db)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: int) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def get_active_order_by_table(self, table_id: int) -> Order:
        order = self._orders.find_active_for_table(table_id)
        if order is None:
            raise NotFoundError("Active order for table", table_id)
        return order

    def list_orders(
        self,
        statuses: list[str] | None = None,
        table_id: int | None = None,
        created_on: date | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
    ) -> Sequence[Order]:
        """Orders newest first, optionally filtered by status set, table and day."""
        if statuses:
            unknown = [s for s in statuses if s not in OrderStatus.ALL]
            if unknown:
                raise ValidationError(
                    f"Unknown order status: {', '.join(unknown)}",
                    field="status",
                )
        return self._orders.find_all(
            OrderFilters(statuses=statuses, table_id=table_id, created_on=created_on, limit=limit)
        )

    # =========================================================================
    # Commands
    # =========================================================================

    def _lock_order(self, order_id: int, with_items: bool = False) -> Order:
        order = self._orders.get_for_update(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if with_items:
            self._orders.lock_items([order.id])
        return order

    def _recompute_session(self, order: Order) -> None:
        if order.session_id is None:
            return
        session = self._sessions.get_for_update(order.session_id)
        if session is not None:
            session_state.recompute_totals(session)

    def accept_order(self, order_id: int, actor: Actor | None = None) -> Order:
        """pending -> accepted; pending items are confirmed with it."""
        with self._transaction():
            order = self._lock_order(order_id, with_items=True)
            previous = order.status
            order_state.accept_order(order, waiter_id=actor.id if actor else None)

        logger.info("Order accepted", order_id=order_id, waiter_id=actor.id if actor else None)
        self._emit(lambda: [domain_event.order_status_changed(order, previous, actor)])
        return self.get_order(order_id)

    def reject_order(self, order_id: int, reason: str | None, actor: Actor | None = None) -> Order:
        """pending -> rejected; the order stops counting toward the session bill."""
        with self._transaction():
            order = self._lock_order(order_id)
            previous = order.status
            order_state.reject_order(order, reason)
            self._recompute_session(order)

        logger.info("Order rejected", order_id=order_id, actor_id=actor.id if actor else None)
        self._emit(
            lambda: [
                domain_event.order_rejected(order, actor),
                domain_event.order_status_changed(order, previous, actor),
            ]
        )
        return self.get_order(order_id)

    def update_order_status(
        self,
        order_id: int,
        status: str,
        actor: Actor | None = None,
        reason: str | None = None,
    ) -> Order:
        """
        Move an order to ``status`` through the state machine.

        Entering ``ready`` additionally notifies waiters for pickup.
        """
        if status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status: {status}", field="status")

        with self._transaction():
            order = self._lock_order(
                order_id,
                with_items=status in (OrderStatus.ACCEPTED, OrderStatus.COMPLETED),
            )
            previous = order_state.transition_order(
                order,
                status,
                reason=reason,
                waiter_id=actor.id if actor else None,
            )
            if status == OrderStatus.REJECTED:
                self._recompute_session(order)

        logger.info(
            "Order status changed",
            order_id=order_id,
            previous_status=previous,
            new_status=status,
        )

        def events():
            built = [domain_event.order_status_changed(order, previous, actor)]
            if status == OrderStatus.READY:
                built.append(domain_event.order_ready(order, actor))
            if status == OrderStatus.REJECTED:
                built.append(domain_event.order_rejected(order, actor))
            return built

        self._emit(events)
        return self.get_order(order_id)

    def complete_order(self, order_id: int, actor: Actor | None = None) -> Order:
        """served -> completed."""
        return self.update_order_status(order_id, OrderStatus.COMPLETED, actor)

    def update_order_item_status(
        self,
        item_id: int,
        status: str,
        actor: Actor | None = None,
    ) -> OrderItem:
        with self._transaction():
            item = self._orders.get_item_for_update(item_id)
            if item is None:
                raise NotFoundError("Order item", item_id)
            previous = order_state.transition_item(item, status)

        logger.info(
            "Order item status changed",
            item_id=item_id,
            order_id=item.order_id,
            previous_status=previous,
            new_status=status,
        )
        self._emit(lambda: [domain_event.item_status_changed(item, item.order, previous, actor)])
        return self._orders.get_item(item_id)

    def add_items_to_order(
        self,
        order_id: int,
        items: Sequence[OrderItemRequest],
        actor: Actor | None = None,
    ) -> Order:
        """
        Append lines to an order that is still open.

        Order and session totals are recomputed in the same transaction.
        """
        with self._transaction():
            order = self._lock_order(order_id)
            order_state.ensure_accepts_items(order)
            if order.session_id is not None:
                session = self._sessions.get_for_update(order.session_id)
                if session is not None:
                    session_state.ensure_accepts_orders(session)

            order.items.extend(build_order_items(self._menu, items))
            refresh_order_totals(order)
            self._recompute_session(order)

        logger.info("Items added to order", order_id=order_id, item_count=len(items))
        return self.get_order(order_id)
