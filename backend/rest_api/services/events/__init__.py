"""
Event Services - real-time notification of order and session changes.

Provides:
- Domain event builders (order created, status changes, session completed)
- Notifier interface with Redis and no-op implementations
- notify_safely for fire-and-forget publication after commit
"""

from . import domain_event
from .domain_event import DomainEvent
from .notifier import (
    Notifier,
    RedisNotifier,
    NullNotifier,
    notify_safely,
    dispatch_events,
    get_notifier,
)

__all__ = [
    "domain_event",
    "DomainEvent",
    "Notifier",
    "RedisNotifier",
    "NullNotifier",
    "notify_safely",
    "dispatch_events",
    "get_notifier",
]
