"""
Database Models Package
=======================

SQLAlchemy ORM models for LevelUp. Importing this package registers every
table on `Base.metadata`.

- progression: learner stats, badges, earned badges, XP ledger
- activity: courses, lessons, enrollments, lesson progress, resource attempts
- enums: shared categorical values
"""

from levelup.core.database.base import Base

from .activity import (
    CourseRow,
    EnrollmentRow,
    LessonProgressRow,
    LessonRow,
    ResourceAttemptRow,
)
from .enums import AttemptStatus, XPSource
from .progression import BadgeRow, EarnedBadgeRow, LearnerStatsRow, XPAwardRow

__all__ = [
    "AttemptStatus",
    "Base",
    "BadgeRow",
    "CourseRow",
    "EarnedBadgeRow",
    "EnrollmentRow",
    "LearnerStatsRow",
    "LessonProgressRow",
    "LessonRow",
    "ResourceAttemptRow",
    "XPAwardRow",
    "XPSource",
]
