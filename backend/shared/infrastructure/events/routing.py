"""
Event Routing.

Single source of truth for which audiences receive which event type.
"""

from __future__ import annotations

import redis.asyncio as redis

from shared.config.logging import get_logger
from .channels import channel_kitchen, channel_table, channel_waiter
from .event_schema import Event
from .event_types import (
    ITEM_STATUS_CHANGED,
    ORDER_CREATED,
    ORDER_READY,
    ORDER_REJECTED,
    ORDER_STATUS_CHANGED,
    SESSION_COMPLETED,
)
from .publisher import publish_event

logger = get_logger(__name__)

TABLE = "table"
KITCHEN = "kitchen"
WAITER = "waiter"

EVENT_AUDIENCES: dict[str, tuple[str, ...]] = {
    ORDER_CREATED: (KITCHEN, WAITER),
    ORDER_STATUS_CHANGED: (TABLE, KITCHEN),
    ORDER_READY: (WAITER, TABLE),
    ITEM_STATUS_CHANGED: (TABLE,),
    ORDER_REJECTED: (TABLE,),
    SESSION_COMPLETED: (TABLE, WAITER),
}


def resolve_channels(event: Event) -> list[str]:
    """
    Channel names for ``event``.

    Table-scoped audiences are skipped when the event carries no table id.
    """
    channels: list[str] = []
    for audience in EVENT_AUDIENCES.get(event.type, ()):
        if audience == TABLE:
            if event.table_id:
                channels.append(channel_table(event.table_id))
        elif audience == KITCHEN:
            channels.append(channel_kitchen())
        elif audience == WAITER:
            channels.append(channel_waiter())
    return channels


async def publish_routed(redis_client: redis.Redis, event: Event) -> int:
    """
    Publish ``event`` to every channel it routes to.

    Each channel gets its own delivery attempt; a failing channel is logged
    and skipped. Raises the last error only when no channel succeeded.

    Returns the total number of subscribers reached.
    """
    channels = resolve_channels(event)
    delivered = 0
    failures: list[tuple[str, Exception]] = []
    for channel in channels:
        try:
            delivered += await publish_event(redis_client, channel, event)
        except Exception as e:
            failures.append((channel, e))
            logger.error(
                "Channel publish failed",
                channel=channel,
                event_type=event.type,
                error=str(e),
            )

    if failures and len(failures) == len(channels):
        raise failures[-1][1]
    return delivered
