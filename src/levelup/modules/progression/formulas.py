"""
LevelUp XP Curve Formulas

Purpose
-------
Pure calculation functions for the XP-to-level curve and level
reconciliation. The cost of going from level k to k+1 is
`BASE_LEVEL_COST + (k - 1) * LEVEL_COST_STEP` XP, so levels 1, 2, 3, 4
begin at 0, 60, 135 and 225 total XP.

Design Notes
------------
- Pure functions only: no I/O, no config access, no logging.
- Integer arithmetic throughout; thresholds are exact.
- The curve constants are fixed here rather than configured: changing them
  would silently re-level every learner.

Usage
-----
    from levelup.modules.progression.formulas import level_from_xp

    level = level_from_xp(140)  # 3
"""

from __future__ import annotations

import math
from typing import Union

from levelup.domain.models.progression import LearnerStats, ReconciliationResult

BASE_LEVEL_COST = 60
LEVEL_COST_STEP = 15

Number = Union[int, float]


def xp_required_for_level(level: int) -> int:
    """
    Total XP needed to reach `level` from zero.

    Closed form of `sum_{k=1}^{level-1} (60 + (k-1)*15)`.

    Example:
        >>> xp_required_for_level(1)
        0
        >>> xp_required_for_level(4)
        225
    """
    if level <= 1:
        return 0
    n = level - 1
    # n * (n - 1) is always even
    return BASE_LEVEL_COST * n + LEVEL_COST_STEP * n * (n - 1) // 2


def level_cost(level: int) -> int:
    """XP needed to go from `level` to `level + 1`."""
    return BASE_LEVEL_COST + (max(level, 1) - 1) * LEVEL_COST_STEP


def level_from_xp(xp: Number) -> int:
    """
    Largest level whose cumulative threshold does not exceed `xp`.

    Non-positive XP is level 1. Fractional XP is floored first, which is
    exact because every threshold is an integer.

    Raises:
        ValueError: If `xp` is NaN or infinite.

    Example:
        >>> level_from_xp(59)
        1
        >>> level_from_xp(60)
        2
        >>> level_from_xp(224)
        3
    """
    if isinstance(xp, float) and not math.isfinite(xp):
        raise ValueError(f"xp must be finite, got {xp}")

    whole_xp = math.floor(xp)
    if whole_xp <= 0:
        return 1

    # Invert 15n^2 + 105n <= 2xp for the number of levels climbed, then
    # correct the estimate for isqrt truncation.
    discriminant = (BASE_LEVEL_COST * 2 - LEVEL_COST_STEP) ** 2 + 8 * LEVEL_COST_STEP * whole_xp
    climbed = max(0, (math.isqrt(discriminant) - (2 * BASE_LEVEL_COST - LEVEL_COST_STEP)) // (2 * LEVEL_COST_STEP))

    while xp_required_for_level(climbed + 2) <= whole_xp:
        climbed += 1
    while climbed > 0 and xp_required_for_level(climbed + 1) > whole_xp:
        climbed -= 1

    return climbed + 1


def progress_to_next_level(total_xp: Number, current_level: int) -> float:
    """
    Fraction of the way from `current_level` to the next level, in [0, 1].

    Values are clamped so a stale stored level can never produce a bar
    outside its track. A zero-width band yields 1.0.

    Example:
        >>> progress_to_next_level(90, 2)
        0.4
    """
    floor_xp = xp_required_for_level(current_level)
    ceiling_xp = xp_required_for_level(current_level + 1)
    span = ceiling_xp - floor_xp
    if span <= 0:
        return 1.0

    fraction = (total_xp - floor_xp) / span
    return float(min(1.0, max(0.0, fraction)))


def progress_percentage(total_xp: Number, current_level: int) -> float:
    """`progress_to_next_level` scaled to [0, 100]."""
    return progress_to_next_level(total_xp, current_level) * 100.0


def xp_to_next_level(total_xp: Number, current_level: int) -> int:
    """XP still missing before the next level (never negative)."""
    return max(0, math.ceil(xp_required_for_level(current_level + 1) - total_xp))


def reconcile_level(stats: LearnerStats) -> ReconciliationResult:
    """
    Derive the correct level for a stored stats row.

    XP is authoritative; the returned level always equals
    `level_from_xp(stats.total_xp)`. A stored level that trails the derived
    one is ordinary staleness. A stored level ahead by more than one step,
    a stored level below 1, or negative XP is flagged as an anomaly.
    """
    correct_level = level_from_xp(stats.total_xp)
    stored_level = stats.current_level

    anomaly = (
        stats.total_xp < 0
        or stored_level < 1
        or stored_level - correct_level > 1
    )

    return ReconciliationResult(
        total_xp=stats.total_xp,
        current_level=correct_level,
        previous_level=stored_level,
        corrected=stored_level != correct_level,
        anomaly=anomaly,
    )
