"""
Progression domain values for LevelUp.

Purpose
-------
Immutable value objects passed between stores, the rule engine and the
progression service. None of them touch storage.

Notes
-----
`LearnerStats` deliberately accepts anomalous stored values (negative XP,
level out of step with XP): reconciliation is what detects and heals those,
so rejecting them at construction would hide the anomaly instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from levelup.domain.models.base import (
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
)


# Attempts finished faster than these count towards the speed badges
QUICK_ATTEMPT_SECONDS = 120
RAPID_ATTEMPT_SECONDS = 30


# ============================================================================
# ENUMS
# ============================================================================


class CounterKind(str, Enum):
    """Activity counters a badge rule can be based on."""

    LESSONS_COMPLETED = "lessons_completed"
    COURSES_ENROLLED = "courses_enrolled"
    COURSES_COMPLETED = "courses_completed"
    COURSES_MASTERED = "courses_mastered"
    COUNTRIES_VISITED = "countries_visited"
    PERFECT_ATTEMPTS = "perfect_attempts"
    QUICK_ATTEMPTS = "quick_attempts"
    RAPID_ATTEMPTS = "rapid_attempts"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CounterKind"]:
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class BadgeCategory(str, Enum):
    MILESTONE = "milestone"
    COURSE = "course"
    ENROLLMENT = "enrollment"
    BADGE_COLLECTION = "badge-collection"
    LESSON = "lesson"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BadgeCategory":
        """Map a stored category string to the enum; unknown values are OTHER."""
        if not value:
            return cls.OTHER
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


# ============================================================================
# LEARNER STATE
# ============================================================================


@dataclass(frozen=True)
class LearnerStats:
    """
    Snapshot of a learner's stored progression row.

    Attributes
    ----------
    learner_id : str
        Opaque learner identifier
    total_xp : int
        Lifetime XP as stored
    current_level : int
        Level as stored (may be stale until reconciled)
    last_level_up : Optional[datetime]
        When the stored level last increased through an award
    """

    learner_id: str
    total_xp: int = 0
    current_level: int = 1
    last_level_up: Optional[datetime] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.learner_id, "learner_id")


@dataclass(frozen=True)
class ActivityCounters:
    """
    Counts of learner activity used by badge rules.

    `courses_mastered` counts courses whose every lesson is completed.
    `quick_attempts` and `rapid_attempts` count final attempts finished in
    under `QUICK_ATTEMPT_SECONDS` and `RAPID_ATTEMPT_SECONDS`.
    """

    lessons_completed: int = 0
    courses_enrolled: int = 0
    courses_completed: int = 0
    courses_mastered: int = 0
    countries_visited: int = 0
    perfect_attempts: int = 0
    quick_attempts: int = 0
    rapid_attempts: int = 0

    def __post_init__(self) -> None:
        for kind in CounterKind:
            validate_non_negative(getattr(self, kind.value), kind.value)

    def get(self, kind: CounterKind) -> int:
        return int(getattr(self, kind.value))


# ============================================================================
# BADGES
# ============================================================================


@dataclass(frozen=True)
class BadgeDefinition:
    """
    A catalogue badge.

    `rule_kind`, `rule_counter` and `threshold` describe the eligibility rule
    explicitly; badges without `rule_kind` are classified from their name
    and category.
    """

    id: str
    name: str
    description: str = ""
    icon: str = ""
    xp_reward: int = 0
    level_required: int = 0
    category: BadgeCategory = BadgeCategory.OTHER
    rule_kind: Optional[str] = None
    rule_counter: Optional[str] = None
    threshold: Optional[int] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_not_empty(self.name, "name")
        validate_non_negative(self.xp_reward, "xp_reward")
        validate_non_negative(self.level_required, "level_required")
        if self.threshold is not None and self.threshold < 0:
            raise DomainValidationError(
                f"threshold must be non-negative, got {self.threshold}",
                field="threshold",
            )


@dataclass(frozen=True)
class EarnedBadge:
    learner_id: str
    badge_id: str
    earned_at: Optional[datetime] = None


@dataclass(frozen=True)
class BadgeEvaluation:
    """Result of checking one badge against a learner's current data."""

    badge_id: str
    requirement_text: str
    is_met: bool
    progress: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.progress <= 1.0:
            raise DomainValidationError(
                f"progress must be within [0, 1], got {self.progress}",
                field="progress",
            )


# ============================================================================
# OPERATION RESULTS
# ============================================================================


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Outcome of deriving the level from XP.

    `corrected` is True when the stored level differed; `anomaly` is True
    when the difference cannot come from a merely stale level (stored level
    ahead by more than one, or negative XP).
    """

    total_xp: int
    current_level: int
    previous_level: int
    corrected: bool
    anomaly: bool = False


@dataclass(frozen=True)
class XPAwardResult:
    learner_id: str
    amount: int
    previous_total_xp: int
    new_total_xp: int
    previous_level: int
    new_level: int
    leveled_up: bool
    duplicate: bool = False

    @property
    def levels_gained(self) -> int:
        return max(0, self.new_level - self.previous_level)


@dataclass(frozen=True)
class ClaimResult:
    success: bool
    message: str
    badge_id: str
    xp_awarded: int = 0
    new_xp: Optional[int] = None
    new_level: Optional[int] = None
    leveled_up: bool = False
    already_earned: bool = False


@dataclass(frozen=True)
class AchievementsOverview:
    """Everything an achievements screen needs for one learner."""

    stats: LearnerStats
    progress_to_next_level: float
    xp_to_next_level: int
    earned: Tuple[EarnedBadge, ...] = field(default_factory=tuple)
    evaluations: Tuple[BadgeEvaluation, ...] = field(default_factory=tuple)
