"""
Progression module: XP curve, badge rules, stores and the progression service.
"""

from levelup.modules.progression.formulas import (
    level_from_xp,
    progress_percentage,
    progress_to_next_level,
    reconcile_level,
    xp_required_for_level,
    xp_to_next_level,
)
from levelup.modules.progression.rules import (
    BadgeCatalogTables,
    BadgeCollection,
    BadgeRule,
    CountThreshold,
    LevelGate,
    Milestone,
    RuleKind,
    SingleEvent,
    Unrecognized,
    Welcome,
    evaluate_badge,
    resolve_rule,
)
from levelup.modules.progression.service import (
    EVENT_BADGE_EARNED,
    EVENT_LEVELED_UP,
    EVENT_STATS_CHANGED,
    EVENT_XP_GAINED,
    ProgressionService,
)

__all__ = [
    "BadgeCatalogTables",
    "BadgeCollection",
    "BadgeRule",
    "CountThreshold",
    "EVENT_BADGE_EARNED",
    "EVENT_LEVELED_UP",
    "EVENT_STATS_CHANGED",
    "EVENT_XP_GAINED",
    "LevelGate",
    "Milestone",
    "ProgressionService",
    "RuleKind",
    "SingleEvent",
    "Unrecognized",
    "Welcome",
    "evaluate_badge",
    "level_from_xp",
    "progress_percentage",
    "progress_to_next_level",
    "reconcile_level",
    "resolve_rule",
    "xp_required_for_level",
    "xp_to_next_level",
]
