"""
Integration Tests for the SQL Progression Stores
================================================

Test Coverage
-------------
- Stats creation on first access, including concurrent first access
- Relative XP increments with the idempotency ledger
- Concurrent increments (no lost updates)
- Level writes (correction and monotonic raise)
- Badge catalogue and earned-badge inserts
- Activity counters from enrollments, lesson progress and attempts

Testing Strategy
----------------
- Integration tests (file-backed SQLite per test via `database`)
- Stores are exercised through their public port methods
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import text

from levelup.core.database.base import utc_now
from levelup.database.models import (
    AttemptStatus,
    BadgeRow,
    CourseRow,
    EnrollmentRow,
    LessonProgressRow,
    LessonRow,
    ResourceAttemptRow,
)
from levelup.domain.models.progression import ActivityCounters, BadgeCategory, CounterKind
from levelup.modules.progression.stores import (
    SqlActivityCounters,
    SqlBadgeStore,
    SqlStatsStore,
)

LEARNER = "learner-1"


@pytest.fixture
def stats_sql():
    return SqlStatsStore()


@pytest.fixture
def badges_sql():
    return SqlBadgeStore()


# ============================================================================
# STATS STORE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSqlStatsStore:
    """Test the learner_stats / xp_awards store."""

    async def test_get_missing_returns_none(self, database, stats_sql):
        assert await stats_sql.get_stats(LEARNER) is None

    async def test_upsert_creates_once(self, database, stats_sql):
        created = await stats_sql.upsert_stats(LEARNER)
        again = await stats_sql.upsert_stats(LEARNER, {"total_xp": 999})

        assert (created.total_xp, created.current_level) == (0, 1)
        assert again.total_xp == 0

    async def test_concurrent_first_access_creates_one_row(self, database, stats_sql):
        results = await asyncio.gather(*(stats_sql.upsert_stats(LEARNER) for _ in range(5)))

        assert {result.learner_id for result in results} == {LEARNER}
        async with database.get_session() as session:
            count = (await session.execute(text("SELECT COUNT(*) FROM learner_stats"))).scalar_one()
        assert count == 1

    async def test_increment_returns_new_total(self, database, stats_sql):
        await stats_sql.upsert_stats(LEARNER)

        updated = await stats_sql.increment_xp(LEARNER, 60, "attempt:1", "attempt")

        assert updated.total_xp == 60
        assert updated.current_level == 1
        assert (await stats_sql.get_stats(LEARNER)).total_xp == 60

    async def test_increment_creates_missing_row(self, database, stats_sql):
        updated = await stats_sql.increment_xp(LEARNER, 25, "attempt:1")

        assert updated.total_xp == 25
        assert (await stats_sql.get_stats(LEARNER)).total_xp == 25

    async def test_replayed_key_returns_none_and_changes_nothing(self, database, stats_sql):
        await stats_sql.increment_xp(LEARNER, 40, "badge:explorer")

        replay = await stats_sql.increment_xp(LEARNER, 40, "badge:explorer")

        assert replay is None
        assert (await stats_sql.get_stats(LEARNER)).total_xp == 40

    async def test_concurrent_increments_do_not_lose_updates(self, database, stats_sql):
        """Awards of 50 and 30 applied at the same time leave 80 XP."""
        # Arrange
        await stats_sql.upsert_stats(LEARNER)

        # Act
        await asyncio.gather(
            stats_sql.increment_xp(LEARNER, 50, "attempt:1"),
            stats_sql.increment_xp(LEARNER, 30, "attempt:2"),
        )

        # Assert
        assert (await stats_sql.get_stats(LEARNER)).total_xp == 80

    async def test_concurrent_replays_apply_once(self, database, stats_sql):
        await stats_sql.upsert_stats(LEARNER)

        results = await asyncio.gather(*(stats_sql.increment_xp(LEARNER, 10, "attempt:9") for _ in range(4)))

        assert sum(1 for result in results if result is not None) == 1
        assert (await stats_sql.get_stats(LEARNER)).total_xp == 10

    async def test_set_level_correction(self, database, stats_sql):
        await stats_sql.upsert_stats(LEARNER, {"total_xp": 100, "current_level": 9})

        assert await stats_sql.set_level(LEARNER, 2) is True
        assert await stats_sql.set_level(LEARNER, 2) is False

        stats = await stats_sql.get_stats(LEARNER)
        assert stats.current_level == 2
        assert stats.last_level_up is None

    async def test_monotonic_raise_never_lowers(self, database, stats_sql):
        # Arrange
        await stats_sql.upsert_stats(LEARNER)

        # Act
        raised = await stats_sql.set_level(LEARNER, 4, only_if_higher=True)
        lowered = await stats_sql.set_level(LEARNER, 3, only_if_higher=True)

        # Assert
        assert (raised, lowered) == (True, False)
        stats = await stats_sql.get_stats(LEARNER)
        assert stats.current_level == 4
        assert stats.last_level_up is not None

    async def test_set_level_for_unknown_learner(self, database, stats_sql):
        assert await stats_sql.set_level("ghost", 3) is False


# ============================================================================
# BADGE STORE
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSqlBadgeStore:
    """Test the badge catalogue and earned badges."""

    @pytest_asyncio.fixture
    async def catalogue(self, database):
        async with database.get_transaction() as session:
            session.add_all(
                [
                    BadgeRow(id="xp-hunter", name="XP Hunter", xp_reward=100, category="milestone"),
                    BadgeRow(
                        id="studious",
                        name="Studious",
                        xp_reward=25,
                        category="lesson",
                        rule_kind="count_threshold",
                        rule_counter="lessons_completed",
                        threshold=10,
                    ),
                    BadgeRow(id="odd", name="Odd", category="Badge_Collection"),
                ]
            )

    async def test_rows_map_to_definitions(self, catalogue, badges_sql):
        studious = await badges_sql.get_badge("studious")

        assert studious.rule_kind == "count_threshold"
        assert studious.rule_counter == CounterKind.LESSONS_COMPLETED.value
        assert studious.threshold == 10
        assert studious.category is BadgeCategory.LESSON
        assert (await badges_sql.get_badge("odd")).category is BadgeCategory.BADGE_COLLECTION

    async def test_list_and_missing(self, catalogue, badges_sql):
        assert {badge.id for badge in await badges_sql.list_badges()} == {"xp-hunter", "studious", "odd"}
        assert await badges_sql.get_badge("nope") is None

    async def test_earned_insert_is_idempotent(self, catalogue, badges_sql):
        first = await badges_sql.insert_earned_badge(LEARNER, "xp-hunter")
        second = await badges_sql.insert_earned_badge(LEARNER, "xp-hunter")

        earned = await badges_sql.list_earned_badges(LEARNER)
        assert (first, second) == (True, False)
        assert [item.badge_id for item in earned] == ["xp-hunter"]
        assert earned[0].earned_at is not None

    async def test_concurrent_earned_inserts(self, catalogue, badges_sql):
        results = await asyncio.gather(*(badges_sql.insert_earned_badge(LEARNER, "studious") for _ in range(3)))

        assert results.count(True) == 1
        assert len(await badges_sql.list_earned_badges(LEARNER)) == 1


# ============================================================================
# ACTIVITY COUNTERS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestSqlActivityCounters:
    """Test counters derived from enrollments, lessons and attempts."""

    async def test_counts(self, database):
        # Arrange
        async with database.get_transaction() as session:
            session.add_all(
                [
                    EnrollmentRow(learner_id=LEARNER, course_id="c1", completed_at=utc_now()),
                    EnrollmentRow(learner_id=LEARNER, course_id="c2"),
                    EnrollmentRow(learner_id="other", course_id="c1", completed_at=utc_now()),
                    LessonProgressRow(learner_id=LEARNER, lesson_id="l1", completed_at=utc_now()),
                    LessonProgressRow(learner_id=LEARNER, lesson_id="l2"),
                ]
            )

        # Act
        counters = await SqlActivityCounters().get_counters(LEARNER)

        # Assert
        assert counters.courses_enrolled == 2
        assert counters.courses_completed == 1
        assert counters.lessons_completed == 1

    async def test_no_activity(self, database):
        counters = await SqlActivityCounters().get_counters("newcomer")

        assert counters == ActivityCounters()

    async def test_countries_and_mastered_courses(self, database):
        # Arrange
        async with database.get_transaction() as session:
            session.add_all(
                [
                    CourseRow(id="c1", title="Tokyo", country_id="jp"),
                    CourseRow(id="c2", title="Paris", country_id="fr"),
                    CourseRow(id="c3", title="Kyoto", country_id="jp"),
                    CourseRow(id="c4", title="Online", country_id=None),
                    LessonRow(id="l1", course_id="c1"),
                    LessonRow(id="l2", course_id="c1"),
                    LessonRow(id="l3", course_id="c2"),
                    *[EnrollmentRow(learner_id=LEARNER, course_id=course) for course in ("c1", "c2", "c3", "c4")],
                    LessonProgressRow(learner_id=LEARNER, lesson_id="l1", completed_at=utc_now()),
                    LessonProgressRow(learner_id=LEARNER, lesson_id="l2", completed_at=utc_now()),
                    LessonProgressRow(learner_id=LEARNER, lesson_id="l3"),
                    LessonProgressRow(learner_id="other", lesson_id="l3", completed_at=utc_now()),
                ]
            )

        # Act
        counters = await SqlActivityCounters().get_counters(LEARNER)

        # Assert
        assert counters.countries_visited == 2
        assert counters.courses_mastered == 1
        assert (await SqlActivityCounters().get_counters("other")).courses_mastered == 1

    async def test_attempt_counters(self, database):
        # Arrange
        def attempt(status, score, max_score, seconds):
            return ResourceAttemptRow(
                learner_id=LEARNER,
                resource_id="quiz-1",
                status=status.value,
                answers={},
                score=score,
                max_score=max_score,
                xp_earned=0,
                time_taken_seconds=seconds,
                started_at=utc_now(),
            )

        async with database.get_transaction() as session:
            session.add_all(
                [
                    attempt(AttemptStatus.COMPLETED, 3, 3, 25),
                    attempt(AttemptStatus.COMPLETED, 2, 3, 100),
                    attempt(AttemptStatus.TIMED_OUT, 0, 0, None),
                    attempt(AttemptStatus.IN_PROGRESS, 3, 3, 10),
                ]
            )

        # Act
        counters = await SqlActivityCounters().get_counters(LEARNER)

        # Assert
        assert counters.perfect_attempts == 1
        assert counters.quick_attempts == 2
        assert counters.rapid_attempts == 1
