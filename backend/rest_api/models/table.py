"""
Table and Session Models: Table, TableSession.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, MONEY, Base, TimestampMixin

if TYPE_CHECKING:
    from .order import Order
    from .payment import PaymentTransaction


class Table(TimestampMixin, Base):
    """
    Physical dining table.
    Created by admin tooling; the session core only reads it.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    table_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    location: Mapped[Optional[str]] = mapped_column(String(100))
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False, index=True
    )  # active, inactive

    __table_args__ = (
        CheckConstraint("capacity > 0", name="chk_table_capacity_positive"),
    )

    sessions: Mapped[list["TableSession"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, number={self.table_number}, status={self.status})>"


class TableSession(TimestampMixin, Base):
    """
    One dining visit at a table.
    Groups the visit's orders for a single combined payment.

    At most one session per table may be ``active``; the partial unique
    index below enforces it at the database level.
    """

    __tablename__ = "table_session"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    # Nullable until a customer claims the session after login
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    session_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False, index=True
    )  # active, completed, cancelled

    # Combined totals over all non-rejected orders
    subtotal: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    payment_status: Mapped[str] = mapped_column(
        String(20), default="unpaid", nullable=False
    )  # unpaid, pending, paid, failed, refunded
    payment_transaction_id: Mapped[Optional[str]] = mapped_column(String(100))

    # MoMo gateway tracking
    momo_request_id: Mapped[Optional[str]] = mapped_column(String(255))
    momo_order_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    # Gateway transaction id doubles as the callback idempotency key
    momo_transaction_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    momo_payment_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY)
    momo_payment_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    momo_response_code: Mapped[Optional[str]] = mapped_column(String(50))
    momo_error_message: Mapped[Optional[str]] = mapped_column(Text)
    momo_raw_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    bill_requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index(
            "uq_table_session_one_active_per_table",
            "table_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_table_session_table_status", "table_id", "status"),
        CheckConstraint("subtotal >= 0", name="chk_table_session_subtotal_non_negative"),
        CheckConstraint("total_amount >= 0", name="chk_table_session_total_non_negative"),
    )

    table: Mapped["Table"] = relationship(back_populates="sessions")
    orders: Mapped[list["Order"]] = relationship(
        back_populates="session", order_by="Order.id"
    )
    transactions: Mapped[list["PaymentTransaction"]] = relationship(
        back_populates="session", order_by="PaymentTransaction.id"
    )

    def __repr__(self) -> str:
        return (
            f"<TableSession(id={self.id}, number={self.session_number}, "
            f"status={self.status}, payment_status={self.payment_status})>"
        )
