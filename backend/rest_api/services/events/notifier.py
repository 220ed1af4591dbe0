"""
Notification fan-out.

Services publish domain events after their transaction commits. Delivery
is best effort: a broken Redis connection or an open circuit must never
fail or roll back the business operation that triggered it.

Usage:
    notifier = RedisNotifier()
    background_tasks.add_task(notify_safely, notifier, event)
"""

from abc import ABC, abstractmethod

from shared.config.logging import notification_logger as logger
from shared.infrastructure.events import Event, get_redis_pool, publish_routed


class Notifier(ABC):
    """Fan-out interface: deliver one event to every audience it routes to."""

    @abstractmethod
    async def publish(self, event: Event) -> None:
        ...


class RedisNotifier(Notifier):
    """Publishes over Redis pub/sub using the shared async pool."""

    async def publish(self, event: Event) -> None:
        redis_client = await get_redis_pool()
        delivered = await publish_routed(redis_client, event)
        logger.debug(
            "Event fanned out",
            event_type=event.type,
            table_id=event.table_id,
            order_id=event.order_id,
            subscribers=delivered,
        )


class NullNotifier(Notifier):
    """Discards every event."""

    async def publish(self, event: Event) -> None:
        return None


async def notify_safely(notifier: Notifier, event: Event) -> bool:
    """
    Publish ``event`` and swallow any failure.

    Returns True when the notifier accepted the event.
    """
    try:
        await notifier.publish(event)
        return True
    except Exception as e:
        logger.error(
            "Failed to publish event",
            event_type=event.type,
            table_id=event.table_id,
            session_id=event.session_id,
            order_id=event.order_id,
            error=str(e),
        )
        return False


async def dispatch_events(notifier: Notifier, events: list[Event]) -> int:
    """Publish events in order. Returns how many were accepted."""
    accepted = 0
    for event in events:
        if await notify_safely(notifier, event):
            accepted += 1
    return accepted


_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    """FastAPI dependency returning the process-wide notifier."""
    global _notifier
    if _notifier is None:
        _notifier = RedisNotifier()
    return _notifier
