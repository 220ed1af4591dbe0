"""
Single-channel event publish.

One logical publish is up to ``redis_publish_max_retries`` Redis calls
with jittered backoff between them. Only a publish that used up every
attempt counts against the circuit breaker.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.settings import settings
from shared.config.logging import get_logger
from .event_types import MAX_EVENT_SIZE
from .event_schema import Event
from .circuit_breaker import get_event_circuit_breaker, calculate_retry_delay_with_jitter

logger = get_logger(__name__)


def encode_event(event: Event) -> str:
    """Serialize ``event``; ValueError when the payload is over MAX_EVENT_SIZE bytes."""
    payload = event.to_json()
    size = len(payload.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(f"Event {event.type} is {size} bytes, limit is {MAX_EVENT_SIZE}")
    return payload


async def publish_event(redis_client: redis.Redis, channel: str, event: Event) -> int:
    """
    Publish ``event`` on ``channel``.

    Returns the subscriber count Redis reports, or 0 when the breaker is
    open and the publish was skipped.

    Raises:
        ValueError: the event is too large (nothing is sent).
        Exception: the last Redis error once every attempt failed.
    """
    payload = encode_event(event)
    breaker = get_event_circuit_breaker()
    if not breaker.allow_publish():
        logger.warning("Event publish skipped, breaker open", channel=channel, event_type=event.type)
        return 0

    attempts = max(1, settings.redis_publish_max_retries)
    attempt = 0
    while True:
        try:
            receivers = await redis_client.publish(channel, payload)
        except Exception as e:
            attempt += 1
            if attempt >= attempts:
                breaker.record_failure()
                logger.error(
                    "Event publish gave up",
                    channel=channel,
                    event_type=event.type,
                    attempts=attempt,
                    error=str(e),
                )
                raise
            delay = calculate_retry_delay_with_jitter(attempt - 1, settings.redis_publish_retry_delay)
            logger.warning(
                "Event publish failed, will retry",
                channel=channel,
                event_type=event.type,
                attempt=attempt,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            await asyncio.sleep(delay)
        else:
            breaker.record_success()
            return receivers
