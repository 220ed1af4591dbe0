"""
Payment Models: PaymentTransaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, MONEY, Base

if TYPE_CHECKING:
    from .table import TableSession


class PaymentTransaction(Base):
    """
    Audit record of one payment attempt or gateway callback.
    Append-only: one row per attempt/callback, never updated.
    """

    __tablename__ = "payment_transaction"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("table_session.id"), nullable=False, index=True
    )
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    # Idempotency key from the initiating side
    request_id: Mapped[Optional[str]] = mapped_column(String(255))
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # pending, completed, failed, cancelled
    response_code: Mapped[Optional[str]] = mapped_column(String(50))
    message: Mapped[Optional[str]] = mapped_column(Text)
    raw_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_payment_transaction_session_created", "session_id", "created_at"),
    )

    session: Mapped["TableSession"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<PaymentTransaction(id={self.id}, session_id={self.session_id}, "
            f"status={self.status}, amount={self.amount})>"
        )
