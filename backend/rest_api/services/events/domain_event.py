"""
Domain event builders.

Turn committed ORM rows into real-time ``Event`` envelopes. Builders only
read already-loaded attributes; they never touch the database session
beyond lazy attribute refresh.
"""

from typing import Any

from rest_api.models import Order, OrderItem, TableSession
from shared.infrastructure.events import (
    Event,
    ITEM_STATUS_CHANGED,
    ORDER_CREATED,
    ORDER_READY,
    ORDER_REJECTED,
    ORDER_STATUS_CHANGED,
    SESSION_COMPLETED,
)
from shared.security.actor import Actor

# Alias used across services: the wire envelope is the domain event
DomainEvent = Event


def _actor(actor: Actor | None) -> dict[str, Any]:
    return actor.as_dict() if actor else {}


def _money(value: Any) -> str:
    return str(value) if value is not None else "0.00"


def order_created(order: Order, actor: Actor | None = None) -> Event:
    return Event(
        type=ORDER_CREATED,
        table_id=order.table_id,
        session_id=order.session_id,
        order_id=order.id,
        entity={
            "order_number": order.order_number,
            "status": order.status,
            "item_count": len(order.items),
            "total_amount": _money(order.total_amount),
            "items": [
                {
                    "id": item.id,
                    "item_name": item.item_name,
                    "quantity": item.quantity,
                    "special_instructions": item.special_instructions,
                }
                for item in order.items
            ],
        },
        actor=_actor(actor),
    )


def order_status_changed(order: Order, previous_status: str, actor: Actor | None = None) -> Event:
    return Event(
        type=ORDER_STATUS_CHANGED,
        table_id=order.table_id,
        session_id=order.session_id,
        order_id=order.id,
        entity={
            "order_number": order.order_number,
            "previous_status": previous_status,
            "status": order.status,
        },
        actor=_actor(actor),
    )


def order_ready(order: Order, actor: Actor | None = None) -> Event:
    return Event(
        type=ORDER_READY,
        table_id=order.table_id,
        session_id=order.session_id,
        order_id=order.id,
        entity={"order_number": order.order_number, "status": order.status},
        actor=_actor(actor),
    )


def order_rejected(order: Order, actor: Actor | None = None) -> Event:
    return Event(
        type=ORDER_REJECTED,
        table_id=order.table_id,
        session_id=order.session_id,
        order_id=order.id,
        entity={
            "order_number": order.order_number,
            "reason": order.rejection_reason,
        },
        actor=_actor(actor),
    )


def item_status_changed(
    item: OrderItem, order: Order, previous_status: str, actor: Actor | None = None
) -> Event:
    return Event(
        type=ITEM_STATUS_CHANGED,
        table_id=order.table_id,
        session_id=order.session_id,
        order_id=order.id,
        entity={
            "item_id": item.id,
            "item_name": item.item_name,
            "previous_status": previous_status,
            "status": item.status,
        },
        actor=_actor(actor),
    )


def session_completed(
    session: TableSession, orders_closed: int = 0, actor: Actor | None = None
) -> Event:
    return Event(
        type=SESSION_COMPLETED,
        table_id=session.table_id,
        session_id=session.id,
        entity={
            "session_number": session.session_number,
            "payment_method": session.payment_method,
            "total_amount": _money(session.total_amount),
            "orders_closed": orders_closed,
        },
        actor=_actor(actor),
    )
