"""
Real-time event infrastructure (Redis pub/sub).

Modules:
- event_types: event type constants and size limit
- event_schema: Event dataclass
- channels: channel naming
- publisher: publish with retry and circuit breaker
- routing: event type -> channels
- redis_pool: shared async Redis client
- circuit_breaker: publish breaker and retry backoff
"""

from .event_types import (
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    ORDER_READY,
    ORDER_REJECTED,
    ITEM_STATUS_CHANGED,
    SESSION_COMPLETED,
    ALL_EVENT_TYPES,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import channel_table, channel_kitchen, channel_waiter
from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    get_event_circuit_breaker,
    calculate_retry_delay_with_jitter,
)
from .publisher import encode_event, publish_event
from .routing import EVENT_AUDIENCES, resolve_channels, publish_routed
from .redis_pool import get_redis_pool, close_redis_pool

__all__ = [
    # Event types
    "ORDER_CREATED",
    "ORDER_STATUS_CHANGED",
    "ORDER_READY",
    "ORDER_REJECTED",
    "ITEM_STATUS_CHANGED",
    "SESSION_COMPLETED",
    "ALL_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    # Schema
    "Event",
    # Channels
    "channel_table",
    "channel_kitchen",
    "channel_waiter",
    # Circuit breaker
    "CircuitState",
    "EventCircuitBreaker",
    "get_event_circuit_breaker",
    "calculate_retry_delay_with_jitter",
    # Publishing
    "encode_event",
    "publish_event",
    "EVENT_AUDIENCES",
    "resolve_channels",
    "publish_routed",
    # Pool
    "get_redis_pool",
    "close_redis_pool",
]
