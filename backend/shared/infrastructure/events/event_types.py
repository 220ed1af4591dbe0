"""
Event Type Constants.

Defines all event types pushed to real-time subscribers.
"""

from shared.config.settings import settings

# =============================================================================
# Order lifecycle events
# Flow: pending -> accepted -> preparing -> ready -> served -> completed
# =============================================================================

ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
ORDER_READY = "ORDER_READY"  # Distinct push to waiters when an order enters ready
ORDER_REJECTED = "ORDER_REJECTED"
ITEM_STATUS_CHANGED = "ITEM_STATUS_CHANGED"

# =============================================================================
# Session events
# =============================================================================

SESSION_COMPLETED = "SESSION_COMPLETED"

ALL_EVENT_TYPES = frozenset(
    {
        ORDER_CREATED,
        ORDER_STATUS_CHANGED,
        ORDER_READY,
        ORDER_REJECTED,
        ITEM_STATUS_CHANGED,
        SESSION_COMPLETED,
    }
)

# Max serialized event size accepted by the publisher
MAX_EVENT_SIZE = settings.event_max_message_size
