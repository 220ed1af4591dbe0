"""
Order aggregate: order and line-item state machines.

All mutations here operate on loaded ORM rows and never commit; the
calling service owns the transaction. A transition either applies
completely or raises before touching any field.
"""

import secrets
from datetime import datetime, timezone

from rest_api.models import Order, OrderItem
from shared.config.constants import (
    ORDER_ITEM_TRANSITIONS,
    ORDER_TRANSITIONS,
    Limits,
    OrderItemStatus,
    OrderStatus,
    get_allowed_transitions,
    is_valid_transition,
)
from shared.utils.exceptions import InvalidStateError, InvalidTransitionError, ValidationError


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_order_number(now: datetime | None = None) -> str:
    """
    ORD-YYYYMMDD-HHMMSS-XXXXXX.

    Timestamp plus 6 random hex characters, so concurrent creations
    never race on a read-count-then-insert.
    """
    now = now or _now()
    return f"ORD-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(3).upper()}"


def validate_order_transition(current: str, target: str, order_id: int | None = None) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the order table."""
    if not is_valid_transition(ORDER_TRANSITIONS, current, target):
        raise InvalidTransitionError(
            "order",
            current,
            target,
            get_allowed_transitions(ORDER_TRANSITIONS, current),
            order_id=order_id,
        )


def validate_item_transition(current: str, target: str, item_id: int | None = None) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the item table."""
    if not is_valid_transition(ORDER_ITEM_TRANSITIONS, current, target):
        raise InvalidTransitionError(
            "order item",
            current,
            target,
            get_allowed_transitions(ORDER_ITEM_TRANSITIONS, current),
            item_id=item_id,
        )


def accept_order(order: Order, waiter_id: int | None = None, now: datetime | None = None) -> None:
    """
    pending -> accepted.

    Every pending line moves to confirmed in the same step.
    """
    validate_order_transition(order.status, OrderStatus.ACCEPTED, order.id)

    order.status = OrderStatus.ACCEPTED
    order.accepted_at = now or _now()
    if waiter_id is not None:
        order.waiter_id = waiter_id
    for item in order.items:
        if item.status == OrderItemStatus.PENDING:
            item.status = OrderItemStatus.CONFIRMED


def normalize_reason(reason: str | None) -> str:
    """Strip a free-text reason and enforce presence and length."""
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("Rejection reason is required", field="reason")
    if len(cleaned) > Limits.MAX_REASON_LENGTH:
        raise ValidationError(
            f"Reason must be at most {Limits.MAX_REASON_LENGTH} characters",
            field="reason",
        )
    return cleaned


def reject_order(order: Order, reason: str | None) -> None:
    """pending -> rejected, with a mandatory reason."""
    cleaned = normalize_reason(reason)
    validate_order_transition(order.status, OrderStatus.REJECTED, order.id)

    order.status = OrderStatus.REJECTED
    order.rejection_reason = cleaned


def complete_order(order: Order, now: datetime | None = None) -> None:
    """served -> completed; every line still in play is marked served."""
    validate_order_transition(order.status, OrderStatus.COMPLETED, order.id)
    _mark_completed(order, now)


def close_for_session(order: Order, now: datetime | None = None) -> bool:
    """
    Close a non-rejected order because its session was settled.

    Bypasses the step-by-step machine: payment ends the visit regardless
    of where the kitchen is. Returns False for rejected or already
    completed orders, which are left alone.
    """
    if order.status in OrderStatus.TERMINAL:
        return False
    _mark_completed(order, now)
    return True


def _mark_completed(order: Order, now: datetime | None) -> None:
    order.status = OrderStatus.COMPLETED
    order.completed_at = now or _now()
    for item in order.items:
        if item.status != OrderItemStatus.CANCELLED:
            item.status = OrderItemStatus.SERVED


def transition_order(
    order: Order,
    target: str,
    *,
    reason: str | None = None,
    waiter_id: int | None = None,
    now: datetime | None = None,
) -> str:
    """
    Move an order to ``target``.

    Targets with side effects route through their dedicated operation
    (accept confirms items, reject needs a reason, complete serves items).
    Returns the previous status.
    """
    previous = order.status
    if target == OrderStatus.ACCEPTED:
        accept_order(order, waiter_id, now)
    elif target == OrderStatus.REJECTED:
        reject_order(order, reason)
    elif target == OrderStatus.COMPLETED:
        complete_order(order, now)
    else:
        validate_order_transition(order.status, target, order.id)
        order.status = target
    return previous


def transition_item(item: OrderItem, target: str) -> str:
    """Move one line item to ``target``. Returns the previous status."""
    previous = item.status
    validate_item_transition(item.status, target, item.id)
    item.status = target
    return previous


def ensure_accepts_items(order: Order) -> None:
    """Completed and rejected orders are closed to new lines."""
    if order.status in OrderStatus.CLOSED:
        raise InvalidStateError(
            "Order",
            order.status,
            [s for s in OrderStatus.ALL if s not in OrderStatus.CLOSED],
            order_id=order.id,
        )
