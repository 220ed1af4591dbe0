"""
Order Models: Order, OrderItem, OrderItemModifier.

Line items snapshot the menu price and names at order time; they are never
re-read from the live menu.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, MONEY, Base, TimestampMixin

if TYPE_CHECKING:
    from .table import TableSession


class Order(TimestampMixin, Base):
    """
    One ordering event within a table session.
    Status only advances through the order state machine.
    """

    # "order" is a reserved SQL keyword
    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    # Nullable: orders may predate session linkage in edge flows
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("table_session.id"), index=True
    )
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    waiter_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    order_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, accepted, rejected, preparing, ready, served, completed
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    subtotal: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_customer_order_session_status", "session_id", "status"),
        Index("ix_customer_order_table_status", "table_id", "status"),
        CheckConstraint("subtotal >= 0", name="chk_order_subtotal_non_negative"),
        CheckConstraint("total_amount >= 0", name="chk_order_total_non_negative"),
    )

    session: Mapped[Optional["TableSession"]] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class OrderItem(Base):
    """
    One line within an order.

    total_price = subtotal + modifier adjustments x quantity.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    # Reference only; price and names below are snapshots
    menu_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("menu_item.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, confirmed, preparing, ready, served, cancelled
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="chk_order_item_unit_price_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    modifiers: Mapped[list["OrderItemModifier"]] = relationship(
        back_populates="order_item", cascade="all, delete-orphan", order_by="OrderItemModifier.id"
    )

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, name={self.item_name}, qty={self.quantity}, status={self.status})>"


class OrderItemModifier(Base):
    """
    A selected modifier option on a line item.
    Immutable once created.
    """

    __tablename__ = "order_item_modifier"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("order_item.id"), nullable=False, index=True
    )
    modifier_group_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    modifier_option_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    price_adjustment: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    group_name: Mapped[str] = mapped_column(String(80), nullable=False)
    option_name: Mapped[str] = mapped_column(String(80), nullable=False)

    order_item: Mapped["OrderItem"] = relationship(back_populates="modifiers")
