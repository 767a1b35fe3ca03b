"""
Progression tables: learner stats, badge catalogue, earned badges, XP ledger.

Schema only. Uniqueness that the engine relies on is enforced here:
- one stats row per learner (first-access races resolve on this key)
- one earned badge per (learner, badge)
- one ledger entry per (learner, idempotency key)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from levelup.core.database.base import Base, IdMixin, TimestampMixin, utc_now


class LearnerStatsRow(Base, IdMixin, TimestampMixin):
    """
    Per-learner XP total and stored level.

    `current_level` is a cache of `level_from_xp(total_xp)`; the progression
    service reconciles it on read.
    """

    __tablename__ = "learner_stats"
    __table_args__ = (
        UniqueConstraint("learner_id", name="uq_learner_stats_learner_id"),
        CheckConstraint("total_xp >= 0", name="ck_learner_stats_total_xp_non_negative"),
        CheckConstraint("current_level >= 1", name="ck_learner_stats_level_positive"),
        Index("ix_learner_stats_total_xp", "total_xp"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    last_level_up: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class BadgeRow(Base, TimestampMixin):
    """
    Badge catalogue entry.

    `rule_kind`, `rule_counter` and `threshold` are optional; badges without
    them are classified by name and category.
    """

    __tablename__ = "badges"
    __table_args__ = (
        UniqueConstraint("name", name="uq_badges_name"),
        CheckConstraint("xp_reward >= 0", name="ck_badges_xp_reward_non_negative"),
        CheckConstraint("level_required >= 0", name="ck_badges_level_required_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    icon: Mapped[str] = mapped_column(String(255), nullable=False, default="", server_default="")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level_required: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="other", server_default="other")
    rule_kind: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    rule_counter: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    threshold: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class EarnedBadgeRow(Base, IdMixin):
    """Append-only record of a badge a learner has earned."""

    __tablename__ = "earned_badges"
    __table_args__ = (
        UniqueConstraint("learner_id", "badge_id", name="uq_earned_badges_learner_badge"),
        Index("ix_earned_badges_learner_id", "learner_id"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    badge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("badges.id", ondelete="CASCADE"),
        nullable=False,
    )
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)


class XPAwardRow(Base, IdMixin):
    """
    XP ledger entry. The unique key makes every award idempotent: a replayed
    (learner_id, idempotency_key) insert fails and the increment is skipped.
    """

    __tablename__ = "xp_awards"
    __table_args__ = (
        UniqueConstraint("learner_id", "idempotency_key", name="uq_xp_awards_learner_key"),
        CheckConstraint("amount >= 0", name="ck_xp_awards_amount_non_negative"),
        Index("ix_xp_awards_learner_id", "learner_id"),
    )

    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    awarded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
