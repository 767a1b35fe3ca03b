"""
In-memory implementations of the progression ports for unit tests.

Each fake yields to the event loop before mutating, so concurrent
coroutines genuinely interleave, and can be told to fail an operation with
`StoreUnavailableError`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

from levelup.domain.models.progression import (
    ActivityCounters,
    BadgeDefinition,
    EarnedBadge,
    LearnerStats,
)
from levelup.modules.shared.exceptions import StoreUnavailableError


class _FailureInjection:
    def __init__(self) -> None:
        self.fail_operations: Set[str] = set()
        self.calls: List[Tuple[str, tuple]] = []

    def _check(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.fail_operations:
            raise StoreUnavailableError(operation, "injected failure")

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class InMemoryStatsStore(_FailureInjection):
    def __init__(self) -> None:
        super().__init__()
        self.rows: Dict[str, LearnerStats] = {}
        self.ledger: Dict[Tuple[str, str], int] = {}

    def seed(self, learner_id: str, total_xp: int, current_level: int) -> None:
        self.rows[learner_id] = LearnerStats(
            learner_id=learner_id,
            total_xp=total_xp,
            current_level=current_level,
        )

    async def get_stats(self, learner_id: str) -> Optional[LearnerStats]:
        self._check("get_stats", learner_id)
        await asyncio.sleep(0)
        return self.rows.get(learner_id)

    async def upsert_stats(self, learner_id: str, defaults: Optional[Dict[str, Any]] = None) -> LearnerStats:
        self._check("upsert_stats", learner_id)
        await asyncio.sleep(0)
        if learner_id not in self.rows:
            values = {"total_xp": 0, "current_level": 1, **(defaults or {})}
            self.rows[learner_id] = LearnerStats(learner_id=learner_id, **values)
        return self.rows[learner_id]

    async def increment_xp(
        self,
        learner_id: str,
        delta: int,
        idempotency_key: str,
        source: Optional[str] = None,
    ) -> Optional[LearnerStats]:
        self._check("increment_xp", learner_id, delta, idempotency_key)
        await asyncio.sleep(0)
        # No await between the ledger check and the write
        if (learner_id, idempotency_key) in self.ledger:
            return None
        self.ledger[(learner_id, idempotency_key)] = delta
        current = self.rows.get(learner_id) or LearnerStats(learner_id=learner_id)
        updated = LearnerStats(
            learner_id=learner_id,
            total_xp=current.total_xp + delta,
            current_level=current.current_level,
            last_level_up=current.last_level_up,
        )
        self.rows[learner_id] = updated
        return updated

    async def set_level(self, learner_id: str, level: int, only_if_higher: bool = False) -> bool:
        self._check("set_level", learner_id, level, only_if_higher)
        await asyncio.sleep(0)
        current = self.rows.get(learner_id)
        if current is None:
            return False
        if only_if_higher and current.current_level >= level:
            return False
        if current.current_level == level:
            return False
        self.rows[learner_id] = LearnerStats(
            learner_id=learner_id,
            total_xp=current.total_xp,
            current_level=level,
            last_level_up=current.last_level_up,
        )
        return True


class InMemoryBadgeStore(_FailureInjection):
    def __init__(self, badges: Optional[List[BadgeDefinition]] = None) -> None:
        super().__init__()
        self.badges: Dict[str, BadgeDefinition] = {badge.id: badge for badge in badges or []}
        self.earned: Dict[str, Dict[str, EarnedBadge]] = {}

    def add(self, *badges: BadgeDefinition) -> None:
        for badge in badges:
            self.badges[badge.id] = badge

    def grant(self, learner_id: str, *badge_ids: str) -> None:
        for badge_id in badge_ids:
            self.earned.setdefault(learner_id, {})[badge_id] = EarnedBadge(learner_id, badge_id)

    async def list_badges(self) -> List[BadgeDefinition]:
        self._check("list_badges")
        return list(self.badges.values())

    async def get_badge(self, badge_id: str) -> Optional[BadgeDefinition]:
        self._check("get_badge", badge_id)
        return self.badges.get(badge_id)

    async def list_earned_badges(self, learner_id: str) -> List[EarnedBadge]:
        self._check("list_earned_badges", learner_id)
        return list(self.earned.get(learner_id, {}).values())

    async def insert_earned_badge(self, learner_id: str, badge_id: str) -> bool:
        self._check("insert_earned_badge", learner_id, badge_id)
        await asyncio.sleep(0)
        learner_badges = self.earned.setdefault(learner_id, {})
        if badge_id in learner_badges:
            return False
        learner_badges[badge_id] = EarnedBadge(learner_id, badge_id)
        return True


class InMemoryActivityCounters(_FailureInjection):
    def __init__(self) -> None:
        super().__init__()
        self.counters: Dict[str, ActivityCounters] = {}

    def set(self, learner_id: str, **counts: int) -> None:
        self.counters[learner_id] = ActivityCounters(**counts)

    async def get_counters(self, learner_id: str) -> ActivityCounters:
        self._check("get_counters", learner_id)
        return self.counters.get(learner_id, ActivityCounters())


class RecordingSink:
    """Notification sink that records every published event."""

    def __init__(self, fail: bool = False) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = fail

    async def publish(self, event_name: str, data: Dict[str, Any]) -> list:
        if self.fail:
            raise ConnectionError("sink offline")
        self.events.append((event_name, dict(data)))
        return []

    def named(self, event_name: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_name]
