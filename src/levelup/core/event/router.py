"""
Wildcard matching for event names.

Patterns may contain `*` anywhere: `"learner.*"`, `"*.leveled_up"`, `"*"`.
Matching is case-sensitive and ordered: each literal fragment between
wildcards must appear after the previous one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    Examples
    --------
    >>> router = EventRouter()
    >>> router.matches("learner.leveled_up", "learner.*")
    True
    >>> router.matches("learner.leveled_up", "course.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True
        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        prefix, suffix = parts[0], parts[-1]

        if prefix and not event_name.startswith(prefix):
            return False
        if suffix and not event_name.endswith(suffix):
            return False
        if len(prefix) + len(suffix) > len(event_name):
            return False

        idx = len(prefix)
        end = len(event_name) - len(suffix)
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, end)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
