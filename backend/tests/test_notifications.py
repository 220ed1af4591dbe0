"""
Tests for event routing and best-effort notification fan-out.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from rest_api.services.events import NullNotifier, RedisNotifier, dispatch_events, notify_safely
from shared.infrastructure.events import (
    CircuitState,
    Event,
    EventCircuitBreaker,
    calculate_retry_delay_with_jitter,
    get_event_circuit_breaker,
    publish_event,
    publish_routed,
    resolve_channels,
)
from tests.conftest import RecordingNotifier


@pytest.fixture(autouse=True)
def _reset_event_breaker():
    get_event_circuit_breaker().reset()
    yield
    get_event_circuit_breaker().reset()


class TestEventSchema:
    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            Event(type="ROUND_SUBMITTED", table_id=1)

    def test_non_positive_ids_rejected(self):
        with pytest.raises(ValueError):
            Event(type="ORDER_CREATED", table_id=0)

    def test_json_envelope(self):
        event = Event(type="ORDER_READY", table_id=3, order_id=12, entity={"order_number": "ORD-1"})

        data = json.loads(event.to_json())

        assert data["type"] == "ORDER_READY"
        assert data["table_id"] == 3
        assert data["entity"] == {"order_number": "ORD-1"}
        assert data["ts"]
        assert Event.from_json(event.to_json()).order_id == 12


class TestRouting:
    @pytest.mark.parametrize(
        "event_type, channels",
        [
            ("ORDER_CREATED", ["kitchen", "waiter"]),
            ("ORDER_STATUS_CHANGED", ["table:4", "kitchen"]),
            ("ORDER_READY", ["waiter", "table:4"]),
            ("ITEM_STATUS_CHANGED", ["table:4"]),
            ("ORDER_REJECTED", ["table:4"]),
            ("SESSION_COMPLETED", ["table:4", "waiter"]),
        ],
    )
    def test_audiences(self, event_type, channels):
        assert resolve_channels(Event(type=event_type, table_id=4)) == channels

    def test_table_audience_skipped_without_table(self):
        assert resolve_channels(Event(type="ORDER_REJECTED")) == []

    @pytest.mark.asyncio
    async def test_publish_routed_counts_subscribers(self):
        redis_client = AsyncMock()
        redis_client.publish.return_value = 2

        delivered = await publish_routed(redis_client, Event(type="ORDER_CREATED", table_id=4))

        assert delivered == 4
        published = [c.args[0] for c in redis_client.publish.await_args_list]
        assert published == ["kitchen", "waiter"]

    @pytest.mark.asyncio
    async def test_failing_channel_does_not_block_others(self):
        async def publish(channel, payload):
            if channel == "kitchen":
                raise ConnectionError("kitchen subscriber gone")
            return 1

        redis_client = AsyncMock()
        redis_client.publish.side_effect = publish

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            delivered = await publish_routed(redis_client, Event(type="ORDER_CREATED", table_id=4))

        assert delivered == 1
        published = {c.args[0] for c in redis_client.publish.await_args_list}
        assert published == {"kitchen", "waiter"}

    @pytest.mark.asyncio
    async def test_raises_when_every_channel_fails(self):
        redis_client = AsyncMock()
        redis_client.publish.side_effect = ConnectionError("down")

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await publish_routed(redis_client, Event(type="SESSION_COMPLETED", table_id=4))


class TestPublisher:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        redis_client = AsyncMock()
        redis_client.publish.side_effect = [ConnectionError("reset"), 1]

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            result = await publish_event(redis_client, "kitchen", Event(type="ORDER_CREATED"))

        assert result == 1
        assert redis_client.publish.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_retries(self):
        redis_client = AsyncMock()
        redis_client.publish.side_effect = ConnectionError("down")

        with patch("shared.infrastructure.events.publisher.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ConnectionError):
                await publish_event(redis_client, "kitchen", Event(type="ORDER_CREATED"))

    @pytest.mark.asyncio
    async def test_oversized_event_rejected(self):
        redis_client = AsyncMock()
        event = Event(type="ORDER_CREATED", entity={"blob": "x" * (70 * 1024)})

        with pytest.raises(ValueError):
            await publish_event(redis_client, "kitchen", event)
        redis_client.publish.assert_not_awaited()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestEventBreaker:
    def test_opens_after_consecutive_failures(self):
        clock = FakeClock()
        breaker = EventCircuitBreaker(failure_threshold=2, cooldown_seconds=10, clock=clock)

        breaker.record_failure()
        assert breaker.allow_publish()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_publish()
        assert breaker.get_stats()["skipped_publishes"] == 1

    def test_single_trial_after_cooldown(self):
        clock = FakeClock()
        breaker = EventCircuitBreaker(failure_threshold=1, cooldown_seconds=10, clock=clock)
        breaker.record_failure()

        clock.now += 10
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_publish()
        assert not breaker.allow_publish()

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED

    def test_failed_trial_reopens(self):
        clock = FakeClock()
        breaker = EventCircuitBreaker(failure_threshold=3, cooldown_seconds=10, clock=clock)
        for _ in range(3):
            breaker.record_failure()

        clock.now += 11
        assert breaker.allow_publish()
        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN

    def test_success_resets_failure_streak(self):
        breaker = EventCircuitBreaker(failure_threshold=2, clock=FakeClock())
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.parametrize("attempt", [0, 1, 2, 8])
    def test_retry_delay_bounded(self, attempt):
        delay = calculate_retry_delay_with_jitter(attempt, base_delay=0.5)

        assert 0 <= delay <= min(0.5 * 2 ** attempt, 10.0)

    @pytest.mark.asyncio
    async def test_open_breaker_skips_publish(self):
        breaker = get_event_circuit_breaker()
        for _ in range(breaker.failure_threshold):
            breaker.record_failure()
        redis_client = AsyncMock()

        assert await publish_event(redis_client, "waiter", Event(type="ORDER_READY")) == 0
        redis_client.publish.assert_not_awaited()


class TestNotifySafely:
    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self):
        result = await notify_safely(RecordingNotifier(fail=True), Event(type="ORDER_CREATED", table_id=1))

        assert result is False

    @pytest.mark.asyncio
    async def test_success_is_reported(self):
        notifier = RecordingNotifier()

        assert await notify_safely(notifier, Event(type="ORDER_CREATED", table_id=1)) is True
        assert notifier.types == ["ORDER_CREATED"]

    @pytest.mark.asyncio
    async def test_dispatch_keeps_going_after_failure(self):
        notifier = RecordingNotifier()
        broken = AsyncMock(side_effect=[RuntimeError("boom"), None])
        notifier.publish = broken

        accepted = await dispatch_events(
            notifier,
            [Event(type="ORDER_CREATED", table_id=1), Event(type="ORDER_READY", table_id=1)],
        )

        assert accepted == 1
        assert broken.await_count == 2

    @pytest.mark.asyncio
    async def test_null_notifier(self):
        assert await notify_safely(NullNotifier(), Event(type="SESSION_COMPLETED", table_id=1)) is True

    @pytest.mark.asyncio
    async def test_redis_notifier_uses_pool(self):
        redis_client = AsyncMock()
        redis_client.publish.return_value = 1

        with patch(
            "rest_api.services.events.notifier.get_redis_pool",
            new=AsyncMock(return_value=redis_client),
        ):
            await RedisNotifier().publish(Event(type="SESSION_COMPLETED", table_id=2))

        channels = [c.args[0] for c in redis_client.publish.await_args_list]
        assert channels == ["table:2", "waiter"]
