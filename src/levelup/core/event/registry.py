"""
Listener storage for the EventBus.

Holds exact-name listeners in a dict and wildcard listeners in a list, both
kept sorted by `(priority, identifier)` so dispatch order is deterministic.
Not thread-safe; all mutation happens on the event loop between awaits.
"""

from __future__ import annotations

from levelup.core.event.router import EventRouter
from levelup.core.event.types import EventListener


class ListenerRegistry:
    """Registry for exact and wildcard event listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener]] = {}
        self._wildcard_listeners: list[tuple[str, EventListener]] = []
        self._router = EventRouter()

    # ------------------------------------------------------------------ #
    # Modification
    # ------------------------------------------------------------------ #

    def add_listener(
        self,
        event_name: str,
        listener: EventListener,
        *,
        allow_duplicates: bool,
    ) -> bool:
        """
        Register a listener.

        Returns:
            False when `(event_name, identifier)` already exists and
            duplicates are not allowed.
        """
        if "*" in event_name:
            if not allow_duplicates and any(
                lst.identifier == listener.identifier
                for pattern, lst in self._wildcard_listeners
                if pattern == event_name
            ):
                return False
            self._wildcard_listeners.append((event_name, listener))
            self._wildcard_listeners.sort(
                key=lambda pl: (pl[1].priority.value, pl[1].identifier)
            )
            return True

        listeners = self._listeners.setdefault(event_name, [])
        if not allow_duplicates and any(
            lst.identifier == listener.identifier for lst in listeners
        ):
            return False
        listeners.append(listener)
        listeners.sort(key=lambda lst: (lst.priority.value, lst.identifier))
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        removed = False

        if event_name in self._listeners:
            before = len(self._listeners[event_name])
            self._listeners[event_name] = [
                lst for lst in self._listeners[event_name] if lst.identifier != identifier
            ]
            removed = len(self._listeners[event_name]) < before
            if not self._listeners[event_name]:
                del self._listeners[event_name]

        before_wc = len(self._wildcard_listeners)
        self._wildcard_listeners = [
            (pattern, lst)
            for pattern, lst in self._wildcard_listeners
            if not (pattern == event_name and lst.identifier == identifier)
        ]
        return removed or len(self._wildcard_listeners) < before_wc

    def clear_all(self) -> int:
        total = self.get_total_listener_count()
        self._listeners.clear()
        self._wildcard_listeners.clear()
        return total

    # ------------------------------------------------------------------ #
    # Lookup & Once-Removal
    # ------------------------------------------------------------------ #

    def extract_listeners_for_event(self, event_name: str) -> list[EventListener]:
        """
        Collect exact and wildcard listeners for an event.

        `once=True` listeners are pruned from the registry in the same pass,
        so a one-shot listener fires at most once even with overlapping
        publishes.
        """
        result: list[EventListener] = []

        exact = self._listeners.get(event_name, [])
        kept = [lst for lst in exact if not lst.once]
        result.extend(exact)
        if kept:
            self._listeners[event_name] = kept
        elif event_name in self._listeners:
            del self._listeners[event_name]

        remaining: list[tuple[str, EventListener]] = []
        for pattern, listener in self._wildcard_listeners:
            if self._router.matches(event_name, pattern):
                result.append(listener)
                if listener.once:
                    continue
            remaining.append((pattern, listener))
        self._wildcard_listeners = remaining

        result.sort(key=lambda lst: (lst.priority.value, lst.identifier))
        return result

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count_for_event(self, event_name: str) -> int:
        exact = len(self._listeners.get(event_name, []))
        wildcard = sum(
            1
            for pattern, _ in self._wildcard_listeners
            if self._router.matches(event_name, pattern)
        )
        return exact + wildcard

    def get_total_listener_count(self) -> int:
        return sum(len(lst) for lst in self._listeners.values()) + len(
            self._wildcard_listeners
        )

    def get_all_event_keys(self) -> list[str]:
        keys = set(self._listeners)
        keys.update(pattern for pattern, _ in self._wildcard_listeners)
        return sorted(keys)
