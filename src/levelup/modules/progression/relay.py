"""
Stats change relay.

Forwards `learner.stats_changed` events from the in-process EventBus to a
Redis pub/sub channel per learner (`<prefix>:<learner_id>`), so live
dashboards in other processes can refresh. The engine does not depend on
this channel: the relay runs as a LOW-priority listener and publish
failures are logged, never raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from redis.exceptions import RedisError

from levelup.core.event.types import ListenerPriority
from levelup.core.logging.logger import get_logger
from levelup.core.redis.service import RedisService
from levelup.modules.progression.service import EVENT_STATS_CHANGED

if TYPE_CHECKING:
    from levelup.core.config.manager import ConfigManager
    from levelup.core.event.bus import EventBus

logger = get_logger(__name__)

Publisher = Callable[[str, Dict[str, Any]], Awaitable[Any]]

RELAY_LISTENER_ID = "progression.stats_change_relay"


class StatsChangeRelay:
    """
    Bridge between the EventBus and Redis pub/sub.

    Args:
        event_bus: Bus carrying `learner.stats_changed`
        config_manager: Source of `progression.notifications.redis_channel_prefix`
        publisher: `async (channel, payload)` callable; `RedisService.publish`
            when omitted
    """

    def __init__(
        self,
        event_bus: EventBus,
        config_manager: ConfigManager,
        publisher: Optional[Publisher] = None,
    ) -> None:
        self._bus = event_bus
        self._prefix = str(
            config_manager.get("progression.notifications.redis_channel_prefix", "levelup:stats")
        )
        self._publish = publisher or RedisService.publish
        self._listener_id: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._listener_id is not None

    def channel_for(self, learner_id: str) -> str:
        return f"{self._prefix}:{learner_id}"

    def start(self) -> str:
        if self._listener_id is None:
            self._listener_id = self._bus.subscribe(
                EVENT_STATS_CHANGED,
                self._relay,
                priority=ListenerPriority.LOW,
                identifier=RELAY_LISTENER_ID,
            )
            logger.info("Stats change relay started", extra={"channel_prefix": self._prefix})
        return self._listener_id

    def stop(self) -> None:
        if self._listener_id is not None:
            self._bus.unsubscribe(EVENT_STATS_CHANGED, self._listener_id)
            self._listener_id = None
            logger.info("Stats change relay stopped")

    async def _relay(self, payload: Dict[str, Any]) -> None:
        learner_id = payload.get("learner_id")
        if not learner_id:
            logger.debug("Stats change without learner_id; not relayed")
            return

        channel = self.channel_for(str(learner_id))
        try:
            await self._publish(channel, payload)
        except (RedisError, RuntimeError, OSError) as exc:
            logger.warning(
                "Stats change relay publish failed",
                extra={
                    "channel": channel,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
