"""
Domain constants: statuses, allowed transitions, roles and limits.

Status values are persisted as lowercase strings.
"""

from typing import Final


class Roles:
    """Actor role constants."""

    CUSTOMER: Final[str] = "customer"
    WAITER: Final[str] = "waiter"
    KITCHEN: Final[str] = "kitchen_staff"
    ADMIN: Final[str] = "admin"

    ALL: Final[list[str]] = [CUSTOMER, WAITER, KITCHEN, ADMIN]
    STAFF: Final[list[str]] = [WAITER, KITCHEN, ADMIN]


class TableStatus:
    """Physical table status."""

    ACTIVE: Final[str] = "active"
    INACTIVE: Final[str] = "inactive"


class MenuItemStatus:
    """Menu item availability."""

    AVAILABLE: Final[str] = "available"
    UNAVAILABLE: Final[str] = "unavailable"
    SOLD_OUT: Final[str] = "sold_out"

    ORDERABLE: Final[list[str]] = [AVAILABLE]


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "pending"
    ACCEPTED: Final[str] = "accepted"
    REJECTED: Final[str] = "rejected"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    COMPLETED: Final[str] = "completed"

    ALL: Final[list[str]] = [PENDING, ACCEPTED, REJECTED, PREPARING, READY, SERVED, COMPLETED]
    # Orders a table is still waiting on
    ACTIVE: Final[list[str]] = [PENDING, ACCEPTED, PREPARING, READY, SERVED]
    TERMINAL: Final[list[str]] = [REJECTED, COMPLETED]
    # Orders that no longer accept new items
    CLOSED: Final[list[str]] = [REJECTED, COMPLETED]


class OrderItemStatus:
    """Order line item status constants."""

    PENDING: Final[str] = "pending"
    CONFIRMED: Final[str] = "confirmed"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, CONFIRMED, PREPARING, READY, SERVED, CANCELLED]
    TERMINAL: Final[list[str]] = [SERVED, CANCELLED]


class SessionStatus:
    """Table session status constants."""

    ACTIVE: Final[str] = "active"
    COMPLETED: Final[str] = "completed"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [ACTIVE, COMPLETED, CANCELLED]
    TERMINAL: Final[list[str]] = [COMPLETED, CANCELLED]


class PaymentStatus:
    """Session payment status constants."""

    UNPAID: Final[str] = "unpaid"
    PENDING: Final[str] = "pending"
    PAID: Final[str] = "paid"
    FAILED: Final[str] = "failed"
    REFUNDED: Final[str] = "refunded"

    ALL: Final[list[str]] = [UNPAID, PENDING, PAID, FAILED, REFUNDED]


class PaymentMethod:
    """Accepted payment methods for session completion."""

    CASH: Final[str] = "cash"
    CARD: Final[str] = "card"
    ZALOPAY: Final[str] = "zalopay"
    MOMO: Final[str] = "momo"
    VNPAY: Final[str] = "vnpay"
    STRIPE: Final[str] = "stripe"

    ALL: Final[list[str]] = [CASH, CARD, ZALOPAY, MOMO, VNPAY, STRIPE]


class TransactionStatus:
    """PaymentTransaction audit row status."""

    PENDING: Final[str] = "pending"
    COMPLETED: Final[str] = "completed"
    FAILED: Final[str] = "failed"
    CANCELLED: Final[str] = "cancelled"


# =============================================================================
# State machines
# =============================================================================

ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderStatus.PENDING: [OrderStatus.ACCEPTED, OrderStatus.REJECTED],
    OrderStatus.ACCEPTED: [OrderStatus.PREPARING],
    OrderStatus.PREPARING: [OrderStatus.READY],
    OrderStatus.READY: [OrderStatus.SERVED],
    OrderStatus.SERVED: [OrderStatus.COMPLETED],
    OrderStatus.REJECTED: [],  # Terminal state
    OrderStatus.COMPLETED: [],  # Terminal state
}

ORDER_ITEM_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderItemStatus.PENDING: [OrderItemStatus.CONFIRMED, OrderItemStatus.CANCELLED],
    OrderItemStatus.CONFIRMED: [OrderItemStatus.PREPARING],
    OrderItemStatus.PREPARING: [OrderItemStatus.READY],
    OrderItemStatus.READY: [OrderItemStatus.SERVED],
    OrderItemStatus.SERVED: [],  # Terminal state
    OrderItemStatus.CANCELLED: [],  # Terminal state
}

SESSION_TRANSITIONS: Final[dict[str, list[str]]] = {
    SessionStatus.ACTIVE: [SessionStatus.COMPLETED, SessionStatus.CANCELLED],
    SessionStatus.COMPLETED: [],  # Terminal state
    SessionStatus.CANCELLED: [],  # Terminal state
}


class Limits:
    """Validation limits."""

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99
    MAX_ITEMS_PER_ORDER: Final[int] = 50

    MAX_INSTRUCTIONS_LENGTH: Final[int] = 500
    MAX_REASON_LENGTH: Final[int] = 500

    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


def get_allowed_transitions(transitions: dict[str, list[str]], current_status: str) -> list[str]:
    """Return the statuses reachable from ``current_status`` (empty for terminal states)."""
    return list(transitions.get(current_status, []))


def is_valid_transition(transitions: dict[str, list[str]], current_status: str, new_status: str) -> bool:
    """
    Validate that a status transition is allowed.

    Returns True if transition is valid, False otherwise.
    """
    return new_status in transitions.get(current_status, [])
