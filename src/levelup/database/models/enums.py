"""
Database Model Enums
====================

Categorical values stored as strings in LevelUp tables. Services compare
against these members rather than raw literals.
"""

from __future__ import annotations

import enum


class AttemptStatus(str, enum.Enum):
    """
    Lifecycle of a quiz/challenge attempt.

    Only IN_PROGRESS attempts accept answers. COMPLETED and TIMED_OUT are
    final and both earn the attempt's XP award.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"

    @property
    def is_final(self) -> bool:
        return self is not AttemptStatus.IN_PROGRESS

    @classmethod
    def final_values(cls) -> tuple[str, ...]:
        return tuple(status.value for status in cls if status.is_final)


class XPSource(str, enum.Enum):
    """Origin recorded on each XP ledger entry."""

    BADGE = "badge"
    ATTEMPT = "attempt"
    MANUAL = "manual"
