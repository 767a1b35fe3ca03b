"""
Base Service Foundation

Purpose
-------
Foundational class for LevelUp domain services. Services implement the
business rules, call stores/repositories, and emit domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Config access through ConfigManager
- Event emission that never fails the caller

What this class does NOT do:
- Manage database transactions (stores and DatabaseService do)
- Retry failed operations

Usage
-----
    class LeaderboardService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)

        async def get_leaderboard(self, limit: int): ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from logging import Logger

    from levelup.modules.progression.ports import NotificationSink


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Object exposing `get(key, default)` (ConfigManager)
        event_bus: Notification sink exposing `async publish(name, payload)`
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: Any,
        event_bus: NotificationSink,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(self, key: str, default: Optional[Any] = None) -> Any:
        """Retrieve a configuration value, falling back to `default`."""
        return self._config.get(key, default)

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Publish a domain event.

        Notifications are fire-and-forget: a failing sink is logged and
        reported as False, never raised, so it cannot undo committed work.
        """
        try:
            await self._events.publish(event_type, {**data, **(context or {})})
        except Exception as exc:
            self.log.warning(
                f"Event emission failed: {event_type}",
                extra={
                    "event_name": event_type,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
            return False
        return True

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with structured context."""
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """Log a service error with full context."""
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
