"""
Tiered listener execution for the EventBus.

- CRITICAL / HIGH: sequential in registry order, each under a timeout.
- NORMAL: concurrent via asyncio.gather, awaited.
- LOW: scheduled as background tasks and not awaited.

Every listener runs under error isolation: exceptions are logged through
`handle_listener_error` and the listener's result becomes None.
"""

from __future__ import annotations

import asyncio
import inspect
from logging import Logger
from typing import Any, Optional

from levelup.core.event.errors import handle_listener_error
from levelup.core.event.types import EventListener, EventPayload, ListenerPriority


class EventScheduler:
    """Executes listeners according to the tiered concurrency model."""

    def __init__(self) -> None:
        # Strong refs so LOW-tier tasks are not garbage collected mid-flight
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        logger: Logger,
        sequential_timeout: Optional[float],
    ) -> list[Any]:
        """
        Run `listeners` (already sorted) and return CRITICAL/HIGH/NORMAL results.
        """
        results: list[Any] = []

        for listener in listeners:
            if listener.priority in (ListenerPriority.CRITICAL, ListenerPriority.HIGH):
                results.append(
                    await self._run_with_timeout(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        logger=logger,
                        timeout=sequential_timeout,
                    )
                )

        normal = [lst for lst in listeners if lst.priority == ListenerPriority.NORMAL]
        if normal:
            results.extend(
                await asyncio.gather(
                    *[
                        self._run_listener(
                            listener=lst,
                            event_name=event_name,
                            payload=payload,
                            logger=logger,
                        )
                        for lst in normal
                    ]
                )
            )

        low = [lst for lst in listeners if lst.priority == ListenerPriority.LOW]
        if low:
            loop = asyncio.get_running_loop()
            for listener in low:
                task = loop.create_task(
                    self._run_listener(
                        listener=listener,
                        event_name=event_name,
                        payload=payload,
                        logger=logger,
                    ),
                    name=f"eventbus-low-{event_name}-{listener.identifier}",
                )
                self._background_tasks.add(task)
                task.add_done_callback(self._background_tasks.discard)

        return results

    async def _run_with_timeout(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
        timeout: Optional[float],
    ) -> Any:
        coro = self._run_listener(
            listener=listener,
            event_name=event_name,
            payload=payload,
            logger=logger,
        )
        if timeout is None or timeout <= 0:
            return await coro

        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as exc:
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
            )
            return None

    async def _run_listener(
        self,
        *,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
        logger: Logger,
    ) -> Any:
        try:
            result = listener.callback(payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            handle_listener_error(
                logger=logger,
                event_name=event_name,
                listener=listener,
                exc=exc,
            )
            return None

    async def drain(self) -> None:
        """Wait for in-flight LOW-tier tasks (shutdown and tests)."""
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)
