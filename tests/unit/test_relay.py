"""
Unit tests for StatsChangeRelay.

Tests channel naming, forwarding of stats-change events to the publisher,
and that publish failures never reach the engine.
"""

import logging

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from levelup.core.logging.logger import get_logger
from levelup.core.redis.service import RedisService
from levelup.modules.progression.relay import RELAY_LISTENER_ID, StatsChangeRelay
from levelup.modules.progression.service import EVENT_STATS_CHANGED, ProgressionService


@pytest.fixture
def publisher(mocker):
    return mocker.AsyncMock(return_value=1)


@pytest.fixture
def relay(event_bus, config_manager, publisher):
    relay = StatsChangeRelay(event_bus, config_manager, publisher=publisher)
    yield relay
    relay.stop()


@pytest.mark.unit
class TestStatsChangeRelay:
    """Test the EventBus to Redis bridge."""

    def test_channel_uses_configured_prefix(self, relay):
        assert relay.channel_for("learner-1") == "levelup:stats:learner-1"

    def test_channel_prefix_override(self, event_bus, config_manager, publisher):
        config_manager.set("progression.notifications.redis_channel_prefix", "tenant-a:stats")

        relay = StatsChangeRelay(event_bus, config_manager, publisher=publisher)

        assert relay.channel_for("learner-1") == "tenant-a:stats:learner-1"

    def test_start_is_idempotent(self, relay, event_bus):
        assert relay.start() == RELAY_LISTENER_ID
        relay.start()

        assert relay.is_running is True
        assert event_bus.get_listener_count(EVENT_STATS_CHANGED) == 1

    def test_stop_unsubscribes(self, relay, event_bus):
        relay.start()
        relay.stop()

        assert relay.is_running is False
        assert event_bus.get_listener_count(EVENT_STATS_CHANGED) == 0

    async def test_stats_change_is_published(self, relay, event_bus, publisher):
        # Arrange
        relay.start()
        payload = {"learner_id": "learner-1", "total_xp": 60, "current_level": 2}

        # Act
        await event_bus.publish(EVENT_STATS_CHANGED, payload)
        await event_bus.drain()

        # Assert
        publisher.assert_awaited_once_with("levelup:stats:learner-1", payload)

    async def test_payload_without_learner_is_dropped(self, relay, event_bus, publisher):
        relay.start()

        await event_bus.publish(EVENT_STATS_CHANGED, {"total_xp": 60})
        await event_bus.drain()

        publisher.assert_not_awaited()

    async def test_publish_failure_is_logged(self, relay, event_bus, publisher, caplog):
        # Arrange
        publisher.side_effect = RedisConnectionError("redis down")
        relay.start()

        # Act
        with caplog.at_level(logging.WARNING):
            await event_bus.publish(EVENT_STATS_CHANGED, {"learner_id": "learner-1", "total_xp": 1})
            await event_bus.drain()

        # Assert
        assert "Stats change relay publish failed" in caplog.text

    async def test_default_publisher_without_redis_does_not_raise(self, event_bus, config_manager, caplog):
        """RedisService not initialized surfaces as a logged warning only."""
        relay = StatsChangeRelay(event_bus, config_manager)
        relay.start()

        with caplog.at_level(logging.WARNING):
            await event_bus.publish(EVENT_STATS_CHANGED, {"learner_id": "learner-1", "total_xp": 1})
            await event_bus.drain()
        relay.stop()

        assert "Stats change relay publish failed" in caplog.text

    async def test_award_reaches_redis_channel(
        self, relay, event_bus, config_manager, publisher, stats_store, badge_store, counters
    ):
        # Arrange
        service = ProgressionService(
            config_manager=config_manager,
            event_bus=event_bus,
            logger=get_logger("tests.relay"),
            stats_store=stats_store,
            badge_store=badge_store,
            counters_provider=counters,
        )
        relay.start()

        # Act
        await service.award_xp("learner-1", 135, "attempt:1")
        await event_bus.drain()

        # Assert
        publisher.assert_awaited_once_with(
            "levelup:stats:learner-1",
            {"learner_id": "learner-1", "total_xp": 135, "current_level": 3},
        )


@pytest.mark.unit
class TestRedisServicePublish:
    """Test JSON publishing through the shared client."""

    async def test_publish_encodes_json(self, mocker):
        client = mocker.MagicMock()
        client.publish = mocker.AsyncMock(return_value=2)
        mocker.patch.object(RedisService, "_client", client)

        receivers = await RedisService.publish("levelup:stats:learner-1", {"learner_id": "learner-1", "total_xp": 5})

        assert receivers == 2
        client.publish.assert_awaited_once_with(
            "levelup:stats:learner-1", '{"learner_id": "learner-1", "total_xp": 5}'
        )

    async def test_publish_requires_initialization(self, mocker):
        mocker.patch.object(RedisService, "_client", None)

        with pytest.raises(RuntimeError):
            await RedisService.publish("levelup:stats:learner-1", {})
