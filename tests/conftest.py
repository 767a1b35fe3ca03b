"""
Pytest Configuration and Fixtures for LevelUp Tests
===================================================

Purpose
-------
Shared fixtures for the LevelUp test suite.

Responsibilities
----------------
- Force testing configuration before any `levelup` import
- In-memory port fakes and a recording notification sink for unit tests
- A file-backed SQLite database (aiosqlite) for integration tests
- Badge definitions used across tests

Architecture Notes
------------------
- Unit tests use in-memory fakes (fast, isolated)
- Integration tests use a real SQLite database per test through
  `DatabaseService`, so transactions, unique constraints and the relative
  XP update run for real
"""

from __future__ import annotations

import os

# Must run before levelup.core.config reads the environment
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_TO_FILE"] = "false"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from levelup.core.config.config import Config
from levelup.core.config.manager import ConfigManager
from levelup.core.database.service import DatabaseService
from levelup.core.event.bus import EventBus
from levelup.core.logging.logger import get_logger
from levelup.domain.models.progression import BadgeCategory, BadgeDefinition
from levelup.modules.progression.service import ProgressionService
from tests.fakes import (
    InMemoryActivityCounters,
    InMemoryBadgeStore,
    InMemoryStatsStore,
    RecordingSink,
)

PROJECT_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture
def config_manager() -> Generator[type[ConfigManager], None, None]:
    """
    ConfigManager loaded from the project's YAML files.

    Scope: function (overrides never leak between tests)
    """
    ConfigManager.reset()
    ConfigManager.initialize(PROJECT_CONFIG_DIR)
    yield ConfigManager
    ConfigManager.reset()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(listener_timeout_seconds=1.0)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


# ============================================================================
# PORT FAKES (Unit Tests)
# ============================================================================


@pytest.fixture
def stats_store() -> InMemoryStatsStore:
    return InMemoryStatsStore()


@pytest.fixture
def badge_store() -> InMemoryBadgeStore:
    return InMemoryBadgeStore()


@pytest.fixture
def counters() -> InMemoryActivityCounters:
    return InMemoryActivityCounters()


@pytest.fixture
def progression_service(config_manager, sink, stats_store, badge_store, counters) -> ProgressionService:
    """ProgressionService over in-memory stores, publishing to `sink`."""
    return ProgressionService(
        config_manager=config_manager,
        event_bus=sink,
        logger=get_logger("tests.progression"),
        stats_store=stats_store,
        badge_store=badge_store,
        counters_provider=counters,
    )


# ============================================================================
# BADGE FIXTURES
# ============================================================================


@pytest.fixture
def sample_badges() -> dict[str, BadgeDefinition]:
    """A catalogue covering every rule family."""
    return {
        "level-5": BadgeDefinition(
            id="level-5",
            name="Rising Star",
            description="Reach level five",
            xp_reward=0,
            level_required=5,
        ),
        "xp-hunter": BadgeDefinition(
            id="xp-hunter",
            name="XP Hunter",
            description="Earn 1000 XP",
            xp_reward=100,
            category=BadgeCategory.MILESTONE,
        ),
        "course-rookie": BadgeDefinition(
            id="course-rookie",
            name="Course Rookie",
            xp_reward=50,
            category=BadgeCategory.COURSE,
        ),
        "explorer": BadgeDefinition(
            id="explorer",
            name="Explorer",
            xp_reward=30,
            category=BadgeCategory.ENROLLMENT,
        ),
        "first-steps": BadgeDefinition(
            id="first-steps",
            name="First Steps",
            xp_reward=20,
            category=BadgeCategory.LESSON,
        ),
        "mystery": BadgeDefinition(
            id="mystery",
            name="Secret Handshake",
            description="Find the hidden room",
            xp_reward=500,
        ),
    }


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[type[DatabaseService], None]:
    """
    Fresh file-backed SQLite database with the full schema.

    Scope: function (clean slate per test)
    Uses: Integration tests; a file database lets concurrent sessions use
    separate connections.
    """
    assert Config.is_testing()
    await DatabaseService.shutdown()
    await DatabaseService.initialize(f"sqlite+aiosqlite:///{tmp_path / 'levelup.db'}")
    await DatabaseService.create_all()
    yield DatabaseService
    await DatabaseService.shutdown()
