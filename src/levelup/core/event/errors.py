"""Error isolation helper for listener execution."""

from __future__ import annotations

from logging import Logger

from levelup.core.event.types import EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """
    Log a failed listener with its event and priority.

    Never raises; one failing listener must not affect the others or the
    publisher.
    """
    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )
