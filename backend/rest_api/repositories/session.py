"""
Session Repository - data access for the table-session aggregate.
Eager loading keeps session -> orders -> items -> modifiers at a fixed query count.
"""

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import joinedload, selectinload

from rest_api.models import Order, OrderItem, Table, TableSession
from shared.config.constants import SessionStatus
from .base import BaseRepository, RepositoryFilters


@dataclass
class SessionFilters(RepositoryFilters):
    """Filters specific to sessions."""

    status: str | None = None
    table_id: int | None = None
    customer_id: int | None = None
    bill_requested: bool | None = None


class SessionRepository(BaseRepository[TableSession]):
    """
    Repository for TableSession aggregates.

    Guarantees eager loading of:
    - table
    - orders -> items -> modifiers
    """

    @property
    def model(self) -> type[TableSession]:
        return TableSession

    def _base_query(self) -> Select:
        return (
            select(TableSession)
            .options(
                joinedload(TableSession.table),
                selectinload(TableSession.orders)
                .selectinload(Order.items)
                .selectinload(OrderItem.modifiers),
            )
            .order_by(TableSession.started_at.desc(), TableSession.id.desc())
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if not isinstance(filters, SessionFilters):
            return query

        if filters.status:
            query = query.where(TableSession.status == filters.status)
        if filters.table_id:
            query = query.where(TableSession.table_id == filters.table_id)
        if filters.customer_id:
            query = query.where(TableSession.customer_id == filters.customer_id)
        if filters.bill_requested is True:
            query = query.where(TableSession.bill_requested_at.is_not(None))
        return query

    def get_table(self, table_id: int) -> Table | None:
        """Read-only table lookup."""
        return self._db.get(Table, table_id)

    def find_active_for_table(self, table_id: int) -> TableSession | None:
        """The table's active session with its orders, or None."""
        return self._db.scalar(
            self._base_query().where(
                TableSession.table_id == table_id,
                TableSession.status == SessionStatus.ACTIVE,
            )
        )

    def find_active_row_for_table(self, table_id: int) -> TableSession | None:
        """Lightweight existence check for an active session (no children)."""
        return self._db.scalar(
            select(TableSession).where(
                TableSession.table_id == table_id,
                TableSession.status == SessionStatus.ACTIVE,
            )
        )

    def find_for_customer(self, customer_id: int, limit: int = 20) -> Sequence[TableSession]:
        """A customer's sessions, newest first."""
        return self.find_all(SessionFilters(customer_id=customer_id, limit=limit))

    def find_pending_bill_requests(self) -> Sequence[TableSession]:
        """Active sessions whose table asked for the bill, oldest request first."""
        query = (
            self._base_query()
            .where(
                TableSession.status == SessionStatus.ACTIVE,
                TableSession.bill_requested_at.is_not(None),
            )
            .order_by(None)
            .order_by(TableSession.bill_requested_at.asc())
        )
        return self._db.execute(query).scalars().unique().all()

