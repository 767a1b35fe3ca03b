from levelup.domain.models.attempts import AttemptSubmission, ResourceAttempt
from levelup.domain.models.base import DomainValidationError
from levelup.domain.models.progression import (
    AchievementsOverview,
    ActivityCounters,
    BadgeCategory,
    BadgeDefinition,
    BadgeEvaluation,
    ClaimResult,
    CounterKind,
    EarnedBadge,
    LearnerStats,
    ReconciliationResult,
    XPAwardResult,
)

__all__ = [
    "AchievementsOverview",
    "ActivityCounters",
    "AttemptSubmission",
    "BadgeCategory",
    "BadgeDefinition",
    "BadgeEvaluation",
    "ClaimResult",
    "CounterKind",
    "DomainValidationError",
    "EarnedBadge",
    "LearnerStats",
    "ReconciliationResult",
    "ResourceAttempt",
    "XPAwardResult",
]
