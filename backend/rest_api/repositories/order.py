"""
Order Repository - data access for the order aggregate.
Eager loading of items and modifiers prevents N+1 queries.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable

from sqlalchemy import Select, select
from sqlalchemy.orm import joinedload, selectinload

from rest_api.models import Order, OrderItem
from shared.config.constants import OrderStatus
from .base import BaseRepository, RepositoryFilters


@dataclass
class OrderFilters(RepositoryFilters):
    """Filters specific to orders."""

    statuses: list[str] | None = None
    table_id: int | None = None
    session_id: int | None = None
    created_on: date | None = None


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order aggregates.

    Guarantees eager loading of:
    - items -> modifiers
    - session
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self) -> Select:
        return (
            select(Order)
            .options(
                selectinload(Order.items).selectinload(OrderItem.modifiers),
                joinedload(Order.session),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if not isinstance(filters, OrderFilters):
            return query

        if filters.statuses:
            query = query.where(Order.status.in_(filters.statuses))
        if filters.table_id:
            query = query.where(Order.table_id == filters.table_id)
        if filters.session_id:
            query = query.where(Order.session_id == filters.session_id)
        if filters.created_on:
            start = datetime.combine(filters.created_on, time.min, tzinfo=timezone.utc)
            query = query.where(
                Order.created_at >= start,
                Order.created_at < start + timedelta(days=1),
            )
        return query

    def find_active_for_table(self, table_id: int) -> Order | None:
        """Most recent order at the table that is still in play."""
        orders = self.find_all(
            OrderFilters(statuses=OrderStatus.ACTIVE, table_id=table_id, limit=1)
        )
        return orders[0] if orders else None

    def get_item(self, item_id: int) -> OrderItem | None:
        return self._db.scalar(
            select(OrderItem)
            .options(joinedload(OrderItem.order))
            .where(OrderItem.id == item_id)
        )

    def get_item_for_update(self, item_id: int) -> OrderItem | None:
        return self._db.scalar(
            select(OrderItem)
            .where(OrderItem.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def lock_items(self, order_ids: Iterable[int]) -> list[OrderItem]:
        """
        Lock and reload every line of the given orders.

        Cascading status changes (accept, completion) must read each line's
        committed status, not the copy already in the identity map.
        """
        ids = list(order_ids)
        if not ids:
            return []
        return list(
            self._db.scalars(
                select(OrderItem)
                .where(OrderItem.order_id.in_(ids))
                .order_by(OrderItem.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        )
