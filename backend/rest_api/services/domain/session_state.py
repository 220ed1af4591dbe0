"""
Session aggregate: session state machine, claiming, completion and totals.

Operates on loaded ORM rows without committing; the calling service owns
the transaction.
"""

import secrets
from datetime import datetime, timezone
from typing import Iterable

from rest_api.models import Order, TableSession
from rest_api.services.domain import order_state
from rest_api.services.domain.pricing import OrderTotals, compute_session_totals
from shared.config.constants import (
    SESSION_TRANSITIONS,
    Limits,
    PaymentMethod,
    PaymentStatus,
    SessionStatus,
    get_allowed_transitions,
    is_valid_transition,
)
from shared.utils.exceptions import InvalidStateError, InvalidTransitionError, ValidationError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_number(now: datetime | None = None) -> str:
    """SESS-YYYYMMDD-HHMMSS-XXXXXX (timestamp plus 6 random hex characters)."""
    now = now or _now()
    return f"SESS-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(3).upper()}"


def new_session(table_id: int, customer_id: int | None = None, now: datetime | None = None) -> TableSession:
    """Build a fresh active session for ``table_id``. Not added to any db session."""
    return TableSession(
        table_id=table_id,
        customer_id=customer_id,
        session_number=generate_session_number(now),
        status=SessionStatus.ACTIVE,
        payment_status=PaymentStatus.UNPAID,
        started_at=now or _now(),
    )


def validate_session_transition(current: str, target: str, session_id: int | None = None) -> None:
    if not is_valid_transition(SESSION_TRANSITIONS, current, target):
        raise InvalidTransitionError(
            "session",
            current,
            target,
            get_allowed_transitions(SESSION_TRANSITIONS, current),
            session_id=session_id,
        )


def ensure_active(session: TableSession) -> None:
    """Terminal sessions accept no further orders or payments."""
    if session.status != SessionStatus.ACTIVE:
        raise InvalidStateError(
            "Session",
            session.status,
            [SessionStatus.ACTIVE],
            session_id=session.id,
        )


def ensure_no_payment_in_flight(session: TableSession) -> None:
    """An initiated gateway payment freezes the bill until its callback or cancel."""
    if session.payment_status == PaymentStatus.PENDING:
        raise InvalidStateError(
            "Session payment",
            session.payment_status,
            [PaymentStatus.UNPAID, PaymentStatus.FAILED],
            session_id=session.id,
        )


def ensure_accepts_orders(session: TableSession) -> None:
    ensure_active(session)
    ensure_no_payment_in_flight(session)


def claim(session: TableSession, customer_id: int) -> bool:
    """
    Bind a customer to the session.

    First writer wins: binding an unclaimed session or re-claiming by the
    same customer succeeds; a session owned by a different customer is
    returned unchanged without raising. Returns True when the session
    belongs to ``customer_id`` afterwards.
    """
    if session.customer_id is None:
        session.customer_id = customer_id
        return True
    return session.customer_id == customer_id


def apply_totals(session: TableSession, totals: OrderTotals) -> None:
    session.subtotal = totals.subtotal
    session.tax_amount = totals.tax_amount
    session.discount_amount = totals.discount_amount
    session.total_amount = totals.total_amount


def recompute_totals(session: TableSession, orders: Iterable[Order] | None = None) -> OrderTotals:
    """Recompute the session totals from its non-rejected orders."""
    orders = session.orders if orders is None else orders
    totals = compute_session_totals(orders, discount=session.discount_amount)
    apply_totals(session, totals)
    return totals


def settle(session: TableSession, now: datetime | None = None) -> int:
    """
    Mark the session paid and completed, closing every non-rejected order.

    Returns the number of orders closed.
    """
    now = now or _now()
    validate_session_transition(session.status, SessionStatus.COMPLETED, session.id)

    recompute_totals(session)
    session.status = SessionStatus.COMPLETED
    session.payment_status = PaymentStatus.PAID
    session.completed_at = now
    return sum(1 for order in session.orders if order_state.close_for_session(order, now))


def complete(
    session: TableSession,
    payment_method: str | None,
    transaction_id: str | None = None,
    now: datetime | None = None,
) -> int:
    """
    Complete a session with an out-of-band payment (cash, card, ...).

    Requires a known payment method and no gateway payment in flight.
    Returns the number of orders closed.
    """
    if not payment_method:
        raise ValidationError("Payment method is required", field="payment_method")
    if payment_method not in PaymentMethod.ALL:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(PaymentMethod.ALL)}",
            field="payment_method",
        )
    ensure_no_payment_in_flight(session)

    closed = settle(session, now)
    session.payment_method = payment_method
    session.payment_transaction_id = transaction_id
    return closed


def cancel(session: TableSession, reason: str | None = None, now: datetime | None = None) -> None:
    """active -> cancelled, keeping the free-text reason in ``notes``."""
    validate_session_transition(session.status, SessionStatus.CANCELLED, session.id)

    cleaned = (reason or "").strip() or None
    if cleaned and len(cleaned) > Limits.MAX_REASON_LENGTH:
        raise ValidationError(
            f"Reason must be at most {Limits.MAX_REASON_LENGTH} characters",
            field="reason",
        )

    session.status = SessionStatus.CANCELLED
    session.notes = cleaned
    session.completed_at = now or _now()
