"""
Badge eligibility rules.

Purpose
-------
Classify each badge into exactly one rule kind and evaluate that rule
against a learner's stats and activity counters. The result is a
`BadgeEvaluation` used both for display and for gating claims.

Responsibilities
----------------
- Define the closed set of rule kinds as frozen dataclasses
- Resolve a badge's rule: stored `rule_kind` first, then the legacy
  name/category precedence
- Evaluate a rule into requirement text, met flag and clamped progress

Design Notes
------------
- Legacy precedence (first match wins): level-gated zero-reward, level
  badge, XP milestone, course completion, enrollment, badge collection,
  activity threshold, single event, welcome, unrecognized.
- A legacy family matched by category but with no resolvable threshold falls
  through to the next family instead of inventing one.
- Unrecognized rules are never met. Their requirement text is the badge's
  raw description.
- Pure module: no I/O, no logging. Name tables are passed in as
  `BadgeCatalogTables`, normally built from configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, FrozenSet, Mapping, Optional, Tuple, Union

from levelup.domain.models.progression import (
    QUICK_ATTEMPT_SECONDS,
    RAPID_ATTEMPT_SECONDS,
    ActivityCounters,
    BadgeCategory,
    BadgeDefinition,
    BadgeEvaluation,
    CounterKind,
    LearnerStats,
)
from levelup.modules.progression.formulas import level_from_xp


# ============================================================================
# RULE KINDS
# ============================================================================


class RuleKind(str, Enum):
    """Values accepted in a badge's stored `rule_kind` column."""

    LEVEL_GATE = "level_gate"
    MILESTONE = "milestone"
    COUNT_THRESHOLD = "count_threshold"
    BADGE_COLLECTION = "badge_collection"
    SINGLE_EVENT = "single_event"
    WELCOME = "welcome"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RuleKind"]:
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class LevelGate:
    level: int


@dataclass(frozen=True)
class Milestone:
    threshold: int


@dataclass(frozen=True)
class CountThreshold:
    counter: CounterKind
    threshold: int


@dataclass(frozen=True)
class BadgeCollection:
    threshold: int


@dataclass(frozen=True)
class SingleEvent:
    counter: CounterKind


@dataclass(frozen=True)
class Welcome:
    """Met as soon as the learner exists; the starter badge."""


@dataclass(frozen=True)
class Unrecognized:
    description: str


BadgeRule = Union[
    LevelGate, Milestone, CountThreshold, BadgeCollection, SingleEvent, Welcome, Unrecognized
]


# ============================================================================
# LEGACY NAME TABLES
# ============================================================================

DEFAULT_LEVEL_BADGES: Mapping[str, int] = {
    "🌱 Beginner Badge": 1,
    "🥉 Bronze Badge": 10,
    "🥈 Silver Badge": 30,
    "🥇 Gold Badge": 50,
    "💎 Master Badge": 70,
}

DEFAULT_MILESTONES: Mapping[str, int] = {
    "XP Hunter": 1000,
    "XP Collector": 5000,
    "XP Master": 10000,
    "XP Legend": 25000,
}

DEFAULT_COURSE_COMPLETION: Mapping[str, int] = {
    "Course Rookie": 1,
    "Course Veteran": 5,
    "Course Master": 10,
    "Course Legend": 25,
}

DEFAULT_ENROLLMENT: Mapping[str, int] = {
    "Explorer": 3,
    "Adventurer": 10,
}

DEFAULT_BADGE_COLLECTION: Mapping[str, int] = {
    "Badge Collector": 10,
    "Badge Hunter": 25,
    "Badge Legend": 50,
}

DEFAULT_ACTIVITY_THRESHOLDS: Mapping[str, Tuple[CounterKind, int]] = {
    "World Traveler": (CounterKind.COUNTRIES_VISITED, 5),
}

DEFAULT_SINGLE_EVENT: Mapping[str, CounterKind] = {
    "First Steps": CounterKind.LESSONS_COMPLETED,
    "First Course Enrollment": CounterKind.COURSES_ENROLLED,
    "Knowledge Seeker": CounterKind.COURSES_MASTERED,
    "Quiz Master": CounterKind.PERFECT_ATTEMPTS,
    "Speed Demon": CounterKind.QUICK_ATTEMPTS,
    "Speedster": CounterKind.RAPID_ATTEMPTS,
}

DEFAULT_WELCOME: FrozenSet[str] = frozenset({"LevelupED Starter!"})


@dataclass(frozen=True)
class BadgeCatalogTables:
    """
    Name-to-threshold tables for badges stored without a `rule_kind`.

    Lookups are by exact badge name.
    """

    level_badges: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_LEVEL_BADGES))
    milestones: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_MILESTONES))
    course_completion: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_COURSE_COMPLETION))
    enrollment: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_ENROLLMENT))
    badge_collection: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_BADGE_COLLECTION))
    activity_thresholds: Mapping[str, Tuple[CounterKind, int]] = field(
        default_factory=lambda: dict(DEFAULT_ACTIVITY_THRESHOLDS)
    )
    single_event: Mapping[str, CounterKind] = field(default_factory=lambda: dict(DEFAULT_SINGLE_EVENT))
    welcome: FrozenSet[str] = DEFAULT_WELCOME

    @classmethod
    def from_config(cls, config_manager: Any) -> "BadgeCatalogTables":
        """
        Build tables from `progression.badges.*`, keeping defaults for any
        table the configuration does not define.

        Entries naming an unknown activity counter are skipped.
        """
        def _thresholds(key: str, default: Mapping[str, int]) -> Mapping[str, int]:
            raw = config_manager.get(f"progression.badges.{key}", None)
            if not isinstance(raw, dict):
                return dict(default)
            return {str(name): int(value) for name, value in raw.items()}

        raw_single = config_manager.get("progression.badges.single_event", None)
        if isinstance(raw_single, dict):
            single_event = {}
            for name, counter_name in raw_single.items():
                counter = CounterKind.parse(counter_name)
                if counter is not None:
                    single_event[str(name)] = counter
        else:
            single_event = dict(DEFAULT_SINGLE_EVENT)

        raw_activity = config_manager.get("progression.badges.activity_thresholds", None)
        if isinstance(raw_activity, dict):
            activity_thresholds = {}
            for name, entry in raw_activity.items():
                if not isinstance(entry, dict):
                    continue
                counter = CounterKind.parse(entry.get("counter"))
                if counter is not None and entry.get("threshold") is not None:
                    activity_thresholds[str(name)] = (counter, int(entry["threshold"]))
        else:
            activity_thresholds = dict(DEFAULT_ACTIVITY_THRESHOLDS)

        raw_welcome = config_manager.get("progression.badges.welcome", None)
        if isinstance(raw_welcome, list):
            welcome = frozenset(str(name) for name in raw_welcome)
        else:
            welcome = DEFAULT_WELCOME

        return cls(
            level_badges=_thresholds("level_badges", DEFAULT_LEVEL_BADGES),
            milestones=_thresholds("milestones", DEFAULT_MILESTONES),
            course_completion=_thresholds("course_completion", DEFAULT_COURSE_COMPLETION),
            enrollment=_thresholds("enrollment", DEFAULT_ENROLLMENT),
            badge_collection=_thresholds("badge_collection", DEFAULT_BADGE_COLLECTION),
            activity_thresholds=activity_thresholds,
            single_event=single_event,
            welcome=welcome,
        )


# ============================================================================
# RESOLUTION
# ============================================================================


def _positive(value: Optional[int]) -> Optional[int]:
    if value is None or value <= 0:
        return None
    return int(value)


def _unrecognized(badge: BadgeDefinition) -> Unrecognized:
    return Unrecognized(description=badge.description or badge.name)


def _resolve_stored_rule(badge: BadgeDefinition, kind: RuleKind) -> BadgeRule:
    threshold = _positive(badge.threshold)
    counter = CounterKind.parse(badge.rule_counter)

    if kind is RuleKind.LEVEL_GATE:
        level = threshold or _positive(badge.level_required)
        return LevelGate(level) if level else _unrecognized(badge)
    if kind is RuleKind.MILESTONE:
        return Milestone(threshold) if threshold else _unrecognized(badge)
    if kind is RuleKind.COUNT_THRESHOLD:
        if threshold and counter is not None:
            return CountThreshold(counter, threshold)
        return _unrecognized(badge)
    if kind is RuleKind.BADGE_COLLECTION:
        return BadgeCollection(threshold) if threshold else _unrecognized(badge)
    if kind is RuleKind.SINGLE_EVENT:
        return SingleEvent(counter) if counter is not None else _unrecognized(badge)
    if kind is RuleKind.WELCOME:
        return Welcome()
    return _unrecognized(badge)


def _legacy_threshold(
    badge: BadgeDefinition,
    table: Mapping[str, int],
    category: BadgeCategory,
) -> Optional[int]:
    if badge.name in table:
        return _positive(table[badge.name])
    if badge.category is category:
        return _positive(badge.threshold)
    return None


def resolve_rule(
    badge: BadgeDefinition,
    catalog: Optional[BadgeCatalogTables] = None,
) -> BadgeRule:
    """
    Classify a badge into exactly one rule kind.

    Example:
        >>> resolve_rule(BadgeDefinition(id="b1", name="XP Hunter"))
        Milestone(threshold=1000)
    """
    stored_kind = RuleKind.parse(badge.rule_kind)
    if stored_kind is not None:
        return _resolve_stored_rule(badge, stored_kind)

    tables = catalog or BadgeCatalogTables()

    if badge.level_required > 0 and badge.xp_reward == 0:
        return LevelGate(badge.level_required)

    level = _positive(tables.level_badges.get(badge.name))
    if level:
        return LevelGate(level)

    threshold = _legacy_threshold(badge, tables.milestones, BadgeCategory.MILESTONE)
    if threshold:
        return Milestone(threshold)

    threshold = _legacy_threshold(badge, tables.course_completion, BadgeCategory.COURSE)
    if threshold:
        return CountThreshold(CounterKind.COURSES_COMPLETED, threshold)

    threshold = _legacy_threshold(badge, tables.enrollment, BadgeCategory.ENROLLMENT)
    if threshold:
        return CountThreshold(CounterKind.COURSES_ENROLLED, threshold)

    threshold = _legacy_threshold(badge, tables.badge_collection, BadgeCategory.BADGE_COLLECTION)
    if threshold:
        return BadgeCollection(threshold)

    if badge.name in tables.activity_thresholds:
        counter, threshold = tables.activity_thresholds[badge.name]
        if threshold > 0:
            return CountThreshold(counter, threshold)

    if badge.name in tables.single_event:
        return SingleEvent(tables.single_event[badge.name])
    if badge.category is BadgeCategory.LESSON:
        return SingleEvent(CounterKind.LESSONS_COMPLETED)

    if badge.name in tables.welcome:
        return Welcome()

    return _unrecognized(badge)


# ============================================================================
# EVALUATION
# ============================================================================

# counter -> (verb, singular noun, plural noun)
_COUNTER_NOUNS = {
    CounterKind.LESSONS_COMPLETED: ("Complete", "lesson", "lessons"),
    CounterKind.COURSES_ENROLLED: ("Enroll in", "course", "courses"),
    CounterKind.COURSES_COMPLETED: ("Complete", "course", "courses"),
    CounterKind.COURSES_MASTERED: ("Finish every lesson of", "course", "courses"),
    CounterKind.COUNTRIES_VISITED: ("Take courses from", "country", "countries"),
    CounterKind.PERFECT_ATTEMPTS: ("Score 100% on", "quiz", "quizzes"),
    CounterKind.QUICK_ATTEMPTS: (
        "Finish",
        f"quiz in under {QUICK_ATTEMPT_SECONDS // 60} minutes",
        f"quizzes in under {QUICK_ATTEMPT_SECONDS // 60} minutes",
    ),
    CounterKind.RAPID_ATTEMPTS: (
        "Finish",
        f"quiz in under {RAPID_ATTEMPT_SECONDS} seconds",
        f"quizzes in under {RAPID_ATTEMPT_SECONDS} seconds",
    ),
}


def _plural(count: int, noun: str, plural: Optional[str] = None) -> str:
    if count == 1:
        return f"{count:,} {noun}"
    return f"{count:,} {plural or noun + 's'}"


def _fraction(value: float, threshold: int) -> float:
    if threshold <= 0:
        return 1.0
    return min(1.0, max(0.0, value / threshold))


def requirement_text(rule: BadgeRule) -> str:
    """Human-readable requirement for a rule."""
    if isinstance(rule, LevelGate):
        return f"Reach level {rule.level}"
    if isinstance(rule, Milestone):
        return f"Earn {rule.threshold:,} total XP"
    if isinstance(rule, CountThreshold):
        verb, noun, plural = _COUNTER_NOUNS[rule.counter]
        return f"{verb} {_plural(rule.threshold, noun, plural)}"
    if isinstance(rule, BadgeCollection):
        return f"Earn {_plural(rule.threshold, 'badge')}"
    if isinstance(rule, SingleEvent):
        verb, noun, _ = _COUNTER_NOUNS[rule.counter]
        return f"{verb} your first {noun}"
    if isinstance(rule, Welcome):
        return "Join LevelUp"
    return rule.description


def evaluate_rule(
    rule: BadgeRule,
    stats: LearnerStats,
    counters: ActivityCounters,
    other_badges_earned: int,
) -> Tuple[bool, float]:
    """
    Evaluate a resolved rule into `(is_met, progress)`.

    A level gate compares against the level derived from `stats.total_xp`,
    not the stored `current_level`: the two agree once reconciled, and XP
    wins while they do not. `other_badges_earned` must already exclude the
    badge being evaluated.
    """
    if isinstance(rule, LevelGate):
        level = level_from_xp(stats.total_xp)
        return level >= rule.level, _fraction(level, rule.level)
    if isinstance(rule, Milestone):
        return stats.total_xp >= rule.threshold, _fraction(stats.total_xp, rule.threshold)
    if isinstance(rule, CountThreshold):
        value = counters.get(rule.counter)
        return value >= rule.threshold, _fraction(value, rule.threshold)
    if isinstance(rule, BadgeCollection):
        return other_badges_earned >= rule.threshold, _fraction(other_badges_earned, rule.threshold)
    if isinstance(rule, SingleEvent):
        met = counters.get(rule.counter) >= 1
        return met, 1.0 if met else 0.0
    if isinstance(rule, Welcome):
        return True, 1.0
    return False, 0.0


def evaluate_badge(
    badge: BadgeDefinition,
    stats: LearnerStats,
    counters: ActivityCounters,
    earned_badge_count: int,
    *,
    already_earned: bool = False,
    catalog: Optional[BadgeCatalogTables] = None,
) -> BadgeEvaluation:
    """
    Check one badge against a learner's current data.

    Args:
        badge: Catalogue badge to check
        stats: Learner stats (XP is authoritative)
        counters: Activity counters for the learner
        earned_badge_count: Size of the learner's earned set
        already_earned: Whether `badge` itself is in the earned set, so it
            is left out of its own collection count
        catalog: Legacy name tables; defaults are used when omitted

    Returns:
        BadgeEvaluation with progress clamped to [0, 1]
    """
    rule = resolve_rule(badge, catalog)
    other_badges_earned = max(0, earned_badge_count - (1 if already_earned else 0))
    is_met, progress = evaluate_rule(rule, stats, counters, other_badges_earned)

    return BadgeEvaluation(
        badge_id=badge.id,
        requirement_text=requirement_text(rule),
        is_met=is_met,
        progress=progress,
    )
