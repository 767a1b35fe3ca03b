"""
SQL-backed progression stores.

Purpose
-------
Implement the progression ports (`StatsStore`, `BadgeStore`,
`ActivityCountersProvider`) over `DatabaseService` and the progression
repositories, converting rows into domain value objects.

Error Handling
--------------
- `OperationalError` / `DBAPIError` become `StoreUnavailableError`
  (retryable). Nothing is assumed committed.
- `IntegrityError` is interpreted per operation:
  - first-access stats creation lost a race: re-read the winner's row
  - XP ledger key already used: the award is a replay, return None
  - earned badge already present: return False

Usage
-----
    stats_store = SqlStatsStore()
    stats = await stats_store.upsert_stats("learner-1")
    updated = await stats_store.increment_xp("learner-1", 50, "attempt:7")
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from levelup.core.database.service import DatabaseService
from levelup.core.logging.logger import get_logger
from levelup.database.models import (
    BadgeRow,
    EarnedBadgeRow,
    LearnerStatsRow,
    XPAwardRow,
)
from levelup.domain.models.progression import (
    QUICK_ATTEMPT_SECONDS,
    RAPID_ATTEMPT_SECONDS,
    ActivityCounters,
    BadgeCategory,
    BadgeDefinition,
    EarnedBadge,
    LearnerStats,
)
from levelup.modules.progression.repositories import (
    ActivityRepository,
    BadgeRepository,
    EarnedBadgeRepository,
    LearnerStatsRepository,
    XPLedgerRepository,
)
from levelup.modules.shared.exceptions import StoreUnavailableError

logger = get_logger(__name__)

# A ledger insert can collide with a concurrent first-access row creation;
# one retry is enough for the loser to see the winner's row.
_INCREMENT_ATTEMPTS = 2


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into `StoreUnavailableError`."""
    try:
        yield
    except IntegrityError:
        raise
    except (OperationalError, DBAPIError) as exc:
        logger.warning(
            f"Store operation failed: {operation}",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
        )
        raise StoreUnavailableError(operation, str(exc)) from exc


def stats_from_row(row: LearnerStatsRow) -> LearnerStats:
    return LearnerStats(
        learner_id=row.learner_id,
        total_xp=int(row.total_xp),
        current_level=int(row.current_level),
        last_level_up=row.last_level_up,
    )


def badge_from_row(row: BadgeRow) -> BadgeDefinition:
    return BadgeDefinition(
        id=row.id,
        name=row.name,
        description=row.description or "",
        icon=row.icon or "",
        xp_reward=int(row.xp_reward or 0),
        level_required=int(row.level_required or 0),
        category=BadgeCategory.parse(row.category),
        rule_kind=row.rule_kind,
        rule_counter=row.rule_counter,
        threshold=row.threshold,
    )


# ============================================================================
# Stats store
# ============================================================================


class SqlStatsStore:
    """`StatsStore` over the `learner_stats` and `xp_awards` tables."""

    def __init__(self) -> None:
        self._stats_repo = LearnerStatsRepository(
            model_class=LearnerStatsRow,
            logger=get_logger(f"{__name__}.LearnerStatsRepository"),
        )
        self._ledger_repo = XPLedgerRepository(
            model_class=XPAwardRow,
            logger=get_logger(f"{__name__}.XPLedgerRepository"),
        )

    async def get_stats(self, learner_id: str) -> Optional[LearnerStats]:
        with store_errors("get_stats"):
            async with DatabaseService.get_session() as session:
                row = await self._stats_repo.get_by_learner(session, learner_id)
                return stats_from_row(row) if row is not None else None

    async def upsert_stats(
        self, learner_id: str, defaults: Optional[Dict[str, Any]] = None
    ) -> LearnerStats:
        """
        Return the learner's stats, creating a row from `defaults` if absent.

        Concurrent first access is safe: the loser of the unique-key race
        re-reads the winner's row.
        """
        existing = await self.get_stats(learner_id)
        if existing is not None:
            return existing

        values = {"total_xp": 0, "current_level": 1, **(defaults or {})}
        try:
            with store_errors("upsert_stats"):
                async with DatabaseService.get_transaction() as session:
                    row = await self._stats_repo.create(
                        session,
                        learner_id,
                        total_xp=int(values["total_xp"]),
                        current_level=int(values["current_level"]),
                    )
                    created = stats_from_row(row)
            logger.info(
                "Learner stats created",
                extra={"learner_id": learner_id},
            )
            return created
        except IntegrityError:
            logger.debug(
                "Concurrent stats creation; reading existing row",
                extra={"learner_id": learner_id},
            )

        winner = await self.get_stats(learner_id)
        if winner is None:
            raise StoreUnavailableError("upsert_stats", "stats row missing after creation conflict")
        return winner

    async def increment_xp(
        self,
        learner_id: str,
        delta: int,
        idempotency_key: str,
        source: Optional[str] = None,
    ) -> Optional[LearnerStats]:
        """
        Record the award in the ledger and add `delta` to total XP in one
        transaction.

        Returns:
            Stats after the increment, or None if `idempotency_key` was
            already used for this learner (nothing changed).
        """
        for attempt in range(1, _INCREMENT_ATTEMPTS + 1):
            try:
                with store_errors("increment_xp"):
                    async with DatabaseService.get_transaction() as session:
                        await self._ledger_repo.record(session, learner_id, idempotency_key, delta, source)
                        result = await self._stats_repo.increment_total_xp(session, learner_id, delta)
                        if result is None:
                            row = await self._stats_repo.create(session, learner_id, total_xp=delta)
                            return stats_from_row(row)
                        return LearnerStats(
                            learner_id=learner_id,
                            total_xp=int(result.total_xp),
                            current_level=int(result.current_level),
                            last_level_up=result.last_level_up,
                        )
            except IntegrityError:
                if await self._key_used(learner_id, idempotency_key):
                    logger.info(
                        "XP award key already applied",
                        extra={"learner_id": learner_id, "idempotency_key": idempotency_key},
                    )
                    return None
                if attempt == _INCREMENT_ATTEMPTS:
                    raise StoreUnavailableError("increment_xp", "conflicting concurrent stats creation")
        return None

    async def set_level(self, learner_id: str, level: int, only_if_higher: bool = False) -> bool:
        with store_errors("set_level"):
            async with DatabaseService.get_transaction() as session:
                return await self._stats_repo.update_level(session, learner_id, level, only_if_higher)

    async def _key_used(self, learner_id: str, idempotency_key: str) -> bool:
        with store_errors("increment_xp"):
            async with DatabaseService.get_session() as session:
                return await self._ledger_repo.has_key(session, learner_id, idempotency_key)


# ============================================================================
# Badge store
# ============================================================================


class SqlBadgeStore:
    """`BadgeStore` over the `badges` and `earned_badges` tables."""

    def __init__(self) -> None:
        self._badge_repo = BadgeRepository(
            model_class=BadgeRow,
            logger=get_logger(f"{__name__}.BadgeRepository"),
        )
        self._earned_repo = EarnedBadgeRepository(
            model_class=EarnedBadgeRow,
            logger=get_logger(f"{__name__}.EarnedBadgeRepository"),
        )

    async def list_badges(self) -> List[BadgeDefinition]:
        with store_errors("list_badges"):
            async with DatabaseService.get_session() as session:
                rows = await self._badge_repo.list_all(session)
                return [badge_from_row(row) for row in rows]

    async def get_badge(self, badge_id: str) -> Optional[BadgeDefinition]:
        with store_errors("get_badge"):
            async with DatabaseService.get_session() as session:
                row = await self._badge_repo.get(session, badge_id)
                return badge_from_row(row) if row is not None else None

    async def list_earned_badges(self, learner_id: str) -> List[EarnedBadge]:
        with store_errors("list_earned_badges"):
            async with DatabaseService.get_session() as session:
                rows = await self._earned_repo.list_for_learner(session, learner_id)
                return [
                    EarnedBadge(learner_id=row.learner_id, badge_id=row.badge_id, earned_at=row.earned_at)
                    for row in rows
                ]

    async def insert_earned_badge(self, learner_id: str, badge_id: str) -> bool:
        try:
            with store_errors("insert_earned_badge"):
                async with DatabaseService.get_transaction() as session:
                    await self._earned_repo.record(session, learner_id, badge_id)
        except IntegrityError:
            logger.info(
                "Badge already earned",
                extra={"learner_id": learner_id, "badge_id": badge_id},
            )
            return False
        return True


# ============================================================================
# Activity counters
# ============================================================================


class SqlActivityCounters:
    """`ActivityCountersProvider` over enrollments, lesson progress and attempts."""

    def __init__(self) -> None:
        self._activity_repo = ActivityRepository(get_logger(f"{__name__}.ActivityRepository"))

    async def get_counters(self, learner_id: str) -> ActivityCounters:
        with store_errors("get_counters"):
            async with DatabaseService.get_session() as session:
                return ActivityCounters(
                    lessons_completed=await self._activity_repo.count_lessons_completed(session, learner_id),
                    courses_enrolled=await self._activity_repo.count_enrollments(session, learner_id),
                    courses_completed=await self._activity_repo.count_courses_completed(session, learner_id),
                    courses_mastered=await self._activity_repo.count_courses_mastered(session, learner_id),
                    countries_visited=await self._activity_repo.count_countries_visited(session, learner_id),
                    perfect_attempts=await self._activity_repo.count_perfect_attempts(session, learner_id),
                    quick_attempts=await self._activity_repo.count_attempts_faster_than(
                        session, learner_id, QUICK_ATTEMPT_SECONDS
                    ),
                    rapid_attempts=await self._activity_repo.count_attempts_faster_than(
                        session, learner_id, RAPID_ATTEMPT_SECONDS
                    ),
                )
