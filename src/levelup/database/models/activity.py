"""
Course catalogue and learner activity tables: courses, lessons,
enrollments, lesson progress, resource attempts.

These feed the activity counters used by badge rules and carry the attempt
status that lets an interrupted XP award be resolved later.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from levelup.core.database.base import Base, IdMixin, TimestampMixin, utc_now
from levelup.database.models.enums import AttemptStatus

JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class CourseRow(Base):
    """Catalogue course; `country_id` drives the countries-visited counter."""

    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    country_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class LessonRow(Base):
    __tablename__ = "lessons"
    __table_args__ = (Index("ix_lessons_course_id", "course_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)


class EnrollmentRow(Base, IdMixin):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("learner_id", "course_id", name="uq_enrollments_learner_course"),
        Index("ix_enrollments_learner_id", "learner_id"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class LessonProgressRow(Base, IdMixin):
    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("learner_id", "lesson_id", name="uq_lesson_progress_learner_lesson"),
        Index("ix_lesson_progress_learner_id", "learner_id"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lesson_id: Mapped[str] = mapped_column(String(64), nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ResourceAttemptRow(Base, IdMixin, TimestampMixin):
    """
    One learner's attempt at a quiz or challenge resource.

    `status` is separate from the XP ledger: a final attempt whose award was
    interrupted is found by status and its keyed award re-issued.
    """

    __tablename__ = "resource_attempts"
    __table_args__ = (
        Index("ix_resource_attempts_learner_resource", "learner_id", "resource_id"),
        Index("ix_resource_attempts_status", "status"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=AttemptStatus.IN_PROGRESS.value,
        server_default=AttemptStatus.IN_PROGRESS.value,
    )
    answers: Mapped[Dict[str, Any]] = mapped_column(JSONVariant, nullable=False, default=dict)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    time_taken_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
