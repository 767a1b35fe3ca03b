"""
EventBus: in-process publish/subscribe for LevelUp.

Purpose
-------
Decouple the progression engine from whoever reacts to progression changes
(UI notifications, the Redis relay, analytics). The engine publishes
`learner.*` events; subscribers register with a priority tier.

Responsibilities
----------------
- Validate listener signatures at subscription time
- Route exact and wildcard subscriptions
- Apply the tiered concurrency model via EventScheduler
- Isolate listener failures from publishers

Non-Responsibilities
--------------------
- Durable delivery (events are fire-and-forget notifications)
- Cross-process fan-out (see `levelup.modules.progression.relay`)

Usage
-----
>>> bus = EventBus()
>>> bus.subscribe("learner.leveled_up", show_toast, priority=ListenerPriority.NORMAL)
>>> await bus.publish("learner.leveled_up", {"learner_id": "u-1", "new_level": 3})
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from levelup.core.event.registry import ListenerRegistry
from levelup.core.event.scheduler import EventScheduler
from levelup.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from levelup.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    Async EventBus with tiered listener priorities.

    Designed for single-threaded asyncio usage; all methods must be called
    from the same event loop.
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        scheduler: Optional[EventScheduler] = None,
        config_manager: Any = None,
        *,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        """
        Args:
            registry: Listener storage; a fresh one when omitted.
            scheduler: Execution strategy; a fresh one when omitted.
            config_manager: Source for `core.event.listener_timeout`.
            listener_timeout_seconds: Explicit timeout for CRITICAL/HIGH
                listeners; wins over config.
        """
        self._registry = registry or ListenerRegistry()
        self._scheduler = scheduler or EventScheduler()

        if listener_timeout_seconds is not None:
            self._timeout = float(listener_timeout_seconds)
        elif config_manager is not None:
            self._timeout = float(config_manager.get("core.event.listener_timeout", 5.0))
        else:
            self._timeout = 5.0

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """
        Raise ValueError unless the callback takes exactly one parameter.
        """
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # C-level callables may not expose a signature
            return

        params = list(sig.parameters.values())
        takes_varargs = any(p.kind == p.VAR_POSITIONAL for p in params)
        params = [p for p in params if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)]
        if takes_varargs and len(params) <= 1:
            return
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier, for `unsubscribe()`.

        Raises:
            ValueError: If the callback signature is invalid.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        added = self._registry.add_listener(
            event_name=event_name,
            listener=listener,
            allow_duplicates=allow_duplicates,
        )

        if added:
            logger.debug(
                "EventBus: subscribed listener",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "once": listener.once,
                },
            )
        else:
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )

        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(
            event_name=event_name, identifier=identifier
        )
        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove every listener (tests and full reinit)."""
        total = self._registry.clear_all()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to every matching listener.

        Returns:
            Results from CRITICAL/HIGH/NORMAL listeners; LOW-tier listeners
            run in the background and are not included.
        """
        listeners = self._registry.extract_listeners_for_event(event_name=event_name)
        if not listeners:
            logger.debug(
                "EventBus: no listeners for event",
                extra={"event_name": event_name},
            )
            return []

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "listener_count": len(listeners),
                "payload_keys": list(data.keys()),
            },
        )

        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            logger=logger,
            sequential_timeout=self._timeout,
        )

    async def drain(self) -> None:
        """Wait for background (LOW-tier) listeners to finish."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name:
            return self._registry.get_listener_count_for_event(event_name)
        return self._registry.get_total_listener_count()

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()
