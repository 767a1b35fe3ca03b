"""
Quiz/challenge attempt values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from levelup.database.models.enums import AttemptStatus
from levelup.domain.models.progression import ClaimResult, XPAwardResult


@dataclass(frozen=True)
class ResourceAttempt:
    """
    Snapshot of a learner's attempt at a quiz or challenge.

    `answers` maps the question index (as a string) to the chosen option.
    """

    id: int
    learner_id: str
    resource_id: str
    status: AttemptStatus
    answers: Dict[str, str] = field(default_factory=dict)
    score: int = 0
    max_score: int = 0
    xp_earned: int = 0
    time_taken_seconds: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_final(self) -> bool:
        return self.status.is_final


@dataclass(frozen=True)
class AttemptSubmission:
    """
    Outcome of submitting an attempt.

    `newly_finalized` is False when the attempt was already final and the
    submission only re-issued its keyed XP award. `badges` holds the badges
    newly earned by this submission.
    """

    attempt: ResourceAttempt
    award: XPAwardResult
    newly_finalized: bool
    badges: Tuple[ClaimResult, ...] = ()
