"""
Progression repositories.

Purpose
-------
SQL queries for the progression tables. Each repository extends
`BaseRepository` with the few statements the stores need: relative XP
increments, monotonic level writes, ledger inserts and activity counts.

Design Notes
------------
- Every method takes the session; the stores own the transactions.
- XP is only ever changed through `increment_total_xp`, a single
  `UPDATE ... SET total_xp = total_xp + :delta RETURNING` statement.
- Unique-constraint violations are left to propagate as `IntegrityError`;
  the stores decide what a violation means.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import distinct, func, select, update

from levelup.core.database.base import utc_now
from levelup.database.models import (
    AttemptStatus,
    BadgeRow,
    CourseRow,
    EarnedBadgeRow,
    EnrollmentRow,
    LearnerStatsRow,
    LessonProgressRow,
    LessonRow,
    ResourceAttemptRow,
    XPAwardRow,
)
from levelup.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy import Row
    from sqlalchemy.ext.asyncio import AsyncSession


# ============================================================================
# Learner stats
# ============================================================================


class LearnerStatsRepository(BaseRepository[LearnerStatsRow]):
    """Repository for the `learner_stats` table."""

    async def get_by_learner(
        self, session: AsyncSession, learner_id: str
    ) -> Optional[LearnerStatsRow]:
        return await self.find_one_where(session, LearnerStatsRow.learner_id == learner_id)

    async def create(
        self,
        session: AsyncSession,
        learner_id: str,
        total_xp: int = 0,
        current_level: int = 1,
    ) -> LearnerStatsRow:
        """Insert a stats row. Raises IntegrityError if the learner already has one."""
        row = LearnerStatsRow(
            learner_id=learner_id,
            total_xp=total_xp,
            current_level=current_level,
            last_level_up=None,
        )
        return await self.add(session, row)

    async def increment_total_xp(
        self, session: AsyncSession, learner_id: str, delta: int
    ) -> Optional[Row]:
        """
        Atomically add `delta` to the learner's XP.

        Returns:
            Row of (total_xp, current_level, last_level_up) after the update,
            or None when the learner has no stats row.
        """
        stmt = (
            update(LearnerStatsRow)
            .where(LearnerStatsRow.learner_id == learner_id)
            .values(
                total_xp=LearnerStatsRow.total_xp + delta,
                updated_at=utc_now(),
            )
            .returning(
                LearnerStatsRow.total_xp,
                LearnerStatsRow.current_level,
                LearnerStatsRow.last_level_up,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        row = result.one_or_none()

        self.log.debug(
            "Repository.increment_total_xp",
            extra={
                "learner_id": learner_id,
                "delta": delta,
                "found": row is not None,
            },
        )
        return row

    async def update_level(
        self,
        session: AsyncSession,
        learner_id: str,
        level: int,
        only_if_higher: bool = False,
    ) -> bool:
        """
        Write `current_level`.

        With `only_if_higher` the write is a monotonic raise that also stamps
        `last_level_up`; it never lowers a level written by a concurrent
        award.
        """
        conditions = [LearnerStatsRow.learner_id == learner_id]
        values = {"current_level": level, "updated_at": utc_now()}
        if only_if_higher:
            conditions.append(LearnerStatsRow.current_level < level)
            values["last_level_up"] = utc_now()
        else:
            conditions.append(LearnerStatsRow.current_level != level)

        stmt = (
            update(LearnerStatsRow)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        changed = (result.rowcount or 0) > 0

        self.log.debug(
            "Repository.update_level",
            extra={
                "learner_id": learner_id,
                "level": level,
                "only_if_higher": only_if_higher,
                "changed": changed,
            },
        )
        return changed

    async def top_by_xp(
        self, session: AsyncSession, limit: int, offset: int = 0
    ) -> List[LearnerStatsRow]:
        stmt = (
            select(LearnerStatsRow)
            .order_by(LearnerStatsRow.total_xp.desc(), LearnerStatsRow.learner_id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def count_with_more_xp(self, session: AsyncSession, total_xp: int) -> int:
        return await self.count(session, LearnerStatsRow.total_xp > total_xp)


# ============================================================================
# XP ledger
# ============================================================================


class XPLedgerRepository(BaseRepository[XPAwardRow]):
    """Repository for the `xp_awards` idempotency ledger."""

    async def record(
        self,
        session: AsyncSession,
        learner_id: str,
        idempotency_key: str,
        amount: int,
        source: Optional[str] = None,
    ) -> XPAwardRow:
        """Insert a ledger entry. Raises IntegrityError for a replayed key."""
        entry = XPAwardRow(
            learner_id=learner_id,
            idempotency_key=idempotency_key,
            amount=amount,
            source=source,
        )
        return await self.add(session, entry)

    async def has_key(
        self, session: AsyncSession, learner_id: str, idempotency_key: str
    ) -> bool:
        return await self.exists(
            session,
            XPAwardRow.learner_id == learner_id,
            XPAwardRow.idempotency_key == idempotency_key,
        )


# ============================================================================
# Badges
# ============================================================================


class BadgeRepository(BaseRepository[BadgeRow]):
    async def list_all(self, session: AsyncSession) -> List[BadgeRow]:
        return await self.find_many_where(
            session,
            order_by=[BadgeRow.level_required.asc(), BadgeRow.xp_reward.asc(), BadgeRow.name.asc()],
        )


class EarnedBadgeRepository(BaseRepository[EarnedBadgeRow]):
    async def list_for_learner(
        self, session: AsyncSession, learner_id: str
    ) -> List[EarnedBadgeRow]:
        return await self.find_many_where(
            session,
            EarnedBadgeRow.learner_id == learner_id,
            order_by=[EarnedBadgeRow.earned_at.asc(), EarnedBadgeRow.id.asc()],
        )

    async def record(
        self, session: AsyncSession, learner_id: str, badge_id: str
    ) -> EarnedBadgeRow:
        """Insert an earned badge. Raises IntegrityError if already earned."""
        return await self.add(session, EarnedBadgeRow(learner_id=learner_id, badge_id=badge_id))


# ============================================================================
# Activity
# ============================================================================


class ActivityRepository:
    """Counting queries over enrollments, lesson progress and attempts."""

    def __init__(self, logger) -> None:
        self.log = logger
        self._enrollments = BaseRepository(EnrollmentRow, logger)
        self._lessons = BaseRepository(LessonProgressRow, logger)
        self._attempts = BaseRepository(ResourceAttemptRow, logger)

    async def count_lessons_completed(self, session: AsyncSession, learner_id: str) -> int:
        return await self._lessons.count(
            session,
            LessonProgressRow.learner_id == learner_id,
            LessonProgressRow.completed_at.is_not(None),
        )

    async def count_enrollments(self, session: AsyncSession, learner_id: str) -> int:
        return await self._enrollments.count(session, EnrollmentRow.learner_id == learner_id)

    async def count_courses_completed(self, session: AsyncSession, learner_id: str) -> int:
        return await self._enrollments.count(
            session,
            EnrollmentRow.learner_id == learner_id,
            EnrollmentRow.completed_at.is_not(None),
        )


    async def count_courses_mastered(self, session: AsyncSession, learner_id: str) -> int:
        """Courses with at least one lesson where every lesson is completed."""
        lessons_per_course = (
            select(LessonRow.course_id, func.count().label("total"))
            .group_by(LessonRow.course_id)
            .subquery()
        )
        completed_per_course = (
            select(LessonRow.course_id, func.count().label("done"))
            .join(LessonProgressRow, LessonProgressRow.lesson_id == LessonRow.id)
            .where(
                LessonProgressRow.learner_id == learner_id,
                LessonProgressRow.completed_at.is_not(None),
            )
            .group_by(LessonRow.course_id)
            .subquery()
        )
        stmt = (
            select(func.count())
            .select_from(completed_per_course)
            .join(lessons_per_course, lessons_per_course.c.course_id == completed_per_course.c.course_id)
            .where(completed_per_course.c.done == lessons_per_course.c.total)
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def count_countries_visited(self, session: AsyncSession, learner_id: str) -> int:
        """Distinct countries among the courses the learner is enrolled in."""
        stmt = (
            select(func.count(distinct(CourseRow.country_id)))
            .select_from(EnrollmentRow)
            .join(CourseRow, CourseRow.id == EnrollmentRow.course_id)
            .where(
                EnrollmentRow.learner_id == learner_id,
                CourseRow.country_id.is_not(None),
            )
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def count_perfect_attempts(self, session: AsyncSession, learner_id: str) -> int:
        return await self._attempts.count(
            session,
            ResourceAttemptRow.learner_id == learner_id,
            ResourceAttemptRow.status.in_(AttemptStatus.final_values()),
            ResourceAttemptRow.max_score > 0,
            ResourceAttemptRow.score == ResourceAttemptRow.max_score,
        )

    async def count_attempts_faster_than(
        self, session: AsyncSession, learner_id: str, seconds: int
    ) -> int:
        return await self._attempts.count(
            session,
            ResourceAttemptRow.learner_id == learner_id,
            ResourceAttemptRow.status.in_(AttemptStatus.final_values()),
            ResourceAttemptRow.time_taken_seconds.is_not(None),
            ResourceAttemptRow.time_taken_seconds < seconds,
        )
