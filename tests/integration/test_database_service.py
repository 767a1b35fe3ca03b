"""
Integration Tests for DatabaseService
=====================================

Purpose
-------
Test database operations against a real SQLite database (aiosqlite).
Verifies lifecycle, transaction management and schema creation.

Test Coverage
-------------
- Initialization guard and health check
- Schema creation for every progression table
- Transaction commit and rollback
- Unique constraints surfacing as IntegrityError
- Driver failures mapped to StoreUnavailableError

Testing Strategy
----------------
- Integration tests (file-backed SQLite per test)
- Tests actual database behavior, not mocks
"""

import pytest
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from levelup.core.database.service import DatabaseNotInitializedError, DatabaseService
from levelup.database.models import LearnerStatsRow, XPAwardRow
from levelup.modules.progression.stores import store_errors
from levelup.modules.shared.exceptions import StoreUnavailableError


# ============================================================================
# LIFECYCLE TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseLifecycle:
    """Test initialization and health."""

    async def test_health_check(self, database):
        assert await database.health_check() is True

    async def test_use_before_initialize_raises(self):
        await DatabaseService.shutdown()

        with pytest.raises(DatabaseNotInitializedError):
            async with DatabaseService.get_session():
                pass

        assert await DatabaseService.health_check() is False

    async def test_schema_created(self, database):
        """Every progression table exists after create_all()."""
        # Act
        async with database.get_session() as session:
            connection = await session.connection()
            tables = await connection.run_sync(lambda sync_conn: sa_inspect(sync_conn).get_table_names())

        # Assert
        for table in (
            "learner_stats",
            "xp_awards",
            "badges",
            "earned_badges",
            "enrollments",
            "lesson_progress",
            "resource_attempts",
        ):
            assert table in tables


# ============================================================================
# TRANSACTION TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseTransactions:
    """Test transaction semantics."""

    async def test_transaction_commit(self, database):
        # Act
        async with database.get_transaction() as session:
            session.add(LearnerStatsRow(learner_id="learner-1", total_xp=10, current_level=1))

        # Assert
        async with database.get_session() as session:
            row = (
                await session.execute(select(LearnerStatsRow).where(LearnerStatsRow.learner_id == "learner-1"))
            ).scalar_one()
            assert row.total_xp == 10

    async def test_transaction_rollback_on_error(self, database):
        # Act
        with pytest.raises(RuntimeError):
            async with database.get_transaction() as session:
                session.add(LearnerStatsRow(learner_id="learner-1", total_xp=10, current_level=1))
                await session.flush()
                raise RuntimeError("abort")

        # Assert
        async with database.get_session() as session:
            count = (await session.execute(text("SELECT COUNT(*) FROM learner_stats"))).scalar_one()
            assert count == 0


# ============================================================================
# ERROR HANDLING TESTS
# ============================================================================


@pytest.mark.integration
@pytest.mark.database
class TestDatabaseErrorHandling:
    """Test constraint and driver errors."""

    async def test_duplicate_ledger_key_violates_unique_constraint(self, database):
        async with database.get_transaction() as session:
            session.add(XPAwardRow(learner_id="learner-1", idempotency_key="attempt:1", amount=5))

        with pytest.raises(IntegrityError):
            async with database.get_transaction() as session:
                session.add(XPAwardRow(learner_id="learner-1", idempotency_key="attempt:1", amount=5))

    async def test_negative_xp_rejected_by_check_constraint(self, database):
        with pytest.raises(IntegrityError):
            async with database.get_transaction() as session:
                session.add(LearnerStatsRow(learner_id="learner-1", total_xp=-1, current_level=1))

    async def test_invalid_sql_maps_to_store_unavailable(self, database):
        with pytest.raises(StoreUnavailableError) as exc_info:
            with store_errors("raw_query"):
                async with database.get_session() as session:
                    await session.execute(text("SELECT * FROM no_such_table"))

        assert exc_info.value.operation == "raw_query"

    async def test_integrity_error_is_not_wrapped(self, database):
        async with database.get_transaction() as session:
            session.add(LearnerStatsRow(learner_id="learner-1", total_xp=0, current_level=1))

        with pytest.raises(IntegrityError):
            with store_errors("create_stats"):
                async with database.get_transaction() as session:
                    session.add(LearnerStatsRow(learner_id="learner-1", total_xp=0, current_level=1))
