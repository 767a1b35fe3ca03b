"""
Collaborator interfaces consumed by the progression service.

The service depends only on these protocols. `levelup.modules.progression.stores`
provides the SQLAlchemy implementations; tests supply in-memory fakes.

Contract notes
--------------
- `StatsStore.increment_xp` is a single relative update guarded by the XP
  ledger. It returns None when the idempotency key was already used.
- `BadgeStore.insert_earned_badge` returns False, not an error, when the
  (learner, badge) pair already exists.
- Store failures surface as `StoreUnavailableError`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from levelup.domain.models.progression import (
    ActivityCounters,
    BadgeDefinition,
    EarnedBadge,
    LearnerStats,
)


@runtime_checkable
class StatsStore(Protocol):
    async def get_stats(self, learner_id: str) -> Optional[LearnerStats]:
        ...

    async def upsert_stats(self, learner_id: str, defaults: Optional[Dict[str, Any]] = None) -> LearnerStats:
        """Return the learner's row, creating it from `defaults` if absent."""
        ...

    async def increment_xp(
        self,
        learner_id: str,
        delta: int,
        idempotency_key: str,
        source: Optional[str] = None,
    ) -> Optional[LearnerStats]:
        """Add `delta` to total XP once per key. None means a replayed key."""
        ...

    async def set_level(self, learner_id: str, level: int, only_if_higher: bool = False) -> bool:
        """Write the level. Returns whether a row changed."""
        ...


@runtime_checkable
class BadgeStore(Protocol):
    async def list_badges(self) -> List[BadgeDefinition]:
        ...

    async def get_badge(self, badge_id: str) -> Optional[BadgeDefinition]:
        ...

    async def list_earned_badges(self, learner_id: str) -> List[EarnedBadge]:
        ...

    async def insert_earned_badge(self, learner_id: str, badge_id: str) -> bool:
        """Record an earned badge. False when it was already earned."""
        ...


@runtime_checkable
class ActivityCountersProvider(Protocol):
    async def get_counters(self, learner_id: str) -> ActivityCounters:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    async def publish(self, event_name: str, data: Dict[str, Any]) -> Any:
        ...
