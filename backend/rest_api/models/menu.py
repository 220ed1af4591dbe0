"""
Menu Models: MenuItem, ModifierGroup, ModifierOption.

Maintained by the menu administration tooling. The session core reads
price and name fields from here and copies them into order snapshots.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, MONEY, Base, TimestampMixin


class MenuItem(TimestampMixin, Base):
    """A dish or drink that can be ordered."""

    __tablename__ = "menu_item"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="available", nullable=False, index=True
    )  # available, unavailable, sold_out
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint("price > 0", name="chk_menu_item_price_positive"),
    )


class ModifierGroup(TimestampMixin, Base):
    """A customization axis, e.g. Size or Toppings."""

    __tablename__ = "modifier_group"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    selection_type: Mapped[str] = mapped_column(
        String(20), default="single", nullable=False
    )  # single, multiple

    options: Mapped[list["ModifierOption"]] = relationship(back_populates="group")


class ModifierOption(TimestampMixin, Base):
    """A selectable choice within a modifier group."""

    __tablename__ = "modifier_option"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    group_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("modifier_group.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    price_adjustment: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0.00"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    __table_args__ = (
        CheckConstraint("price_adjustment >= 0", name="chk_modifier_option_adjustment_non_negative"),
    )

    group: Mapped["ModifierGroup"] = relationship(back_populates="options")
