"""
Attempt Service
===============

Purpose
-------
Runs a learner's quiz/challenge attempt from start to XP award: resume or
create the attempt, auto-save answers, score and finalize it, then credit
XP through `ProgressionService.award_xp` keyed by the attempt.

Domain
------
- start_attempt() resumes the in-progress attempt or creates one
- save_answers() merges answers while the attempt is in progress
- submit_attempt() scores, finalizes (completed / timed_out), awards XP and
  claims the badges the attempt unlocked (Quiz Master, Speed Demon, ...)
- resolve_pending_awards() re-issues keyed awards for final attempts

Design Notes
------------
- Attempt status lives on the attempt row, separate from the XP ledger.
  Finalizing commits before the award, so an award lost to a failure is
  recovered by `resolve_pending_awards()` or by re-submitting; the
  `attempt:<id>` key makes both exactly-once.
- Finalization locks the attempt row (SELECT ... FOR UPDATE).
- Badge checks run through `ProgressionService.sweep_achievements()`, so
  every badge is re-validated and claimed with its keyed award.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from levelup.core.database.base import utc_now
from levelup.core.database.service import DatabaseService
from levelup.core.logging.logger import LogContext, get_logger
from levelup.core.validation.input_validator import InputValidator
from levelup.database.models import AttemptStatus, ResourceAttemptRow, XPSource
from levelup.domain.models.attempts import AttemptSubmission, ResourceAttempt
from levelup.modules.attempts.repository import ResourceAttemptRepository
from levelup.modules.progression.stores import store_errors
from levelup.modules.shared.base_service import BaseService
from levelup.modules.shared.exceptions import (
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from logging import Logger

    from levelup.core.config.manager import ConfigManager
    from levelup.core.event.bus import EventBus
    from levelup.domain.models.progression import XPAwardResult
    from levelup.modules.progression.service import ProgressionService

EVENT_ATTEMPT_FINALIZED = "attempt.finalized"


def attempt_from_row(row: ResourceAttemptRow) -> ResourceAttempt:
    return ResourceAttempt(
        id=row.id,
        learner_id=row.learner_id,
        resource_id=row.resource_id,
        status=AttemptStatus(row.status),
        answers={str(key): str(value) for key, value in (row.answers or {}).items()},
        score=int(row.score or 0),
        max_score=int(row.max_score or 0),
        xp_earned=int(row.xp_earned or 0),
        time_taken_seconds=row.time_taken_seconds,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


def score_answers(answers: Mapping[str, str], questions: Sequence[Mapping[str, Any]]) -> int:
    """Count questions whose stored answer equals `correct_answer`."""
    score = 0
    for index, question in enumerate(questions):
        correct = question.get("correct_answer")
        if correct is not None and answers.get(str(index)) == correct:
            score += 1
    return score


class AttemptService(BaseService):
    """
    Service for resource attempts and their XP awards.

    Public Methods
    --------------
    - start_attempt() -> Resume or create an in-progress attempt
    - get_attempt() -> Read one attempt
    - save_answers() -> Merge answers into an in-progress attempt
    - submit_attempt() -> Score, finalize, award XP and claim badges
    - resolve_pending_awards() -> Apply any award lost after finalization
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        progression_service: ProgressionService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._progression = progression_service
        self._attempt_repo = ResourceAttemptRepository(
            model_class=ResourceAttemptRow,
            logger=get_logger(f"{__name__}.ResourceAttemptRepository"),
        )

    # ========================================================================
    # PUBLIC API - Attempt lifecycle
    # ========================================================================

    async def start_attempt(self, learner_id: str, resource_id: str, max_score: int) -> ResourceAttempt:
        """
        Resume the learner's in-progress attempt for `resource_id`, or
        create a new one.

        Args:
            learner_id: Learner taking the resource
            resource_id: Quiz/challenge identifier
            max_score: Number of scorable questions in the resource
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        resource_id = InputValidator.validate_identifier(resource_id, "resource_id")
        max_score = InputValidator.validate_non_negative_integer(max_score, "max_score")

        with store_errors("start_attempt"):
            async with DatabaseService.get_transaction() as session:
                row = await self._attempt_repo.find_in_progress(session, learner_id, resource_id)
                resumed = row is not None
                if row is None:
                    row = await self._attempt_repo.add(
                        session,
                        ResourceAttemptRow(
                            learner_id=learner_id,
                            resource_id=resource_id,
                            status=AttemptStatus.IN_PROGRESS.value,
                            answers={},
                            score=0,
                            max_score=max_score,
                            xp_earned=0,
                            time_taken_seconds=None,
                            started_at=utc_now(),
                            completed_at=None,
                        ),
                    )
                attempt = attempt_from_row(row)

        self.log_operation(
            "start_attempt",
            learner_id=learner_id,
            resource_id=resource_id,
            attempt_id=attempt.id,
            resumed=resumed,
        )
        return attempt

    async def get_attempt(self, attempt_id: int, learner_id: str) -> ResourceAttempt:
        """
        Raises:
            NotFoundError: If the attempt does not exist for this learner
        """
        attempt_id = InputValidator.validate_positive_integer(attempt_id, "attempt_id")
        learner_id = InputValidator.validate_learner_id(learner_id)

        with store_errors("get_attempt"):
            async with DatabaseService.get_session() as session:
                row = await self._attempt_repo.get_for_learner(session, attempt_id, learner_id)
                if row is None:
                    raise NotFoundError("Attempt", attempt_id)
                return attempt_from_row(row)

    async def save_answers(
        self, attempt_id: int, learner_id: str, answers: Mapping[Any, str]
    ) -> ResourceAttempt:
        """
        Merge `answers` (question index -> option) into an in-progress attempt.

        Raises:
            NotFoundError: If the attempt does not exist for this learner
            InvalidOperationError: If the attempt is already final
        """
        attempt_id = InputValidator.validate_positive_integer(attempt_id, "attempt_id")
        learner_id = InputValidator.validate_learner_id(learner_id)
        normalized = self._normalize_answers(answers)

        with store_errors("save_answers"):
            async with DatabaseService.get_transaction() as session:
                row = await self._attempt_repo.get_for_learner(session, attempt_id, learner_id, for_update=True)
                if row is None:
                    raise NotFoundError("Attempt", attempt_id)
                if AttemptStatus(row.status).is_final:
                    raise InvalidOperationError("save_answers", f"Attempt is already {row.status}")

                # New dict so the JSON column is flagged dirty
                row.answers = {**(row.answers or {}), **normalized}
                await session.flush()
                attempt = attempt_from_row(row)

        self.log.debug(
            "Attempt answers saved",
            extra={"attempt_id": attempt_id, "answer_count": len(attempt.answers)},
        )
        return attempt

    async def submit_attempt(
        self,
        attempt_id: int,
        learner_id: str,
        questions: Sequence[Mapping[str, Any]],
        xp_reward: Optional[int] = None,
        timed_out: bool = False,
        time_taken_seconds: Optional[int] = None,
    ) -> AttemptSubmission:
        """
        Score and finalize an attempt, award its XP, then claim any badges
        the learner now satisfies.

        A re-submitted final attempt is not re-scored; its keyed award and
        the badge sweep are re-run, which are no-ops if already applied.

        Args:
            attempt_id: Attempt to submit
            learner_id: Owner of the attempt
            questions: Resource questions, each with a `correct_answer`
            xp_reward: XP for finishing (`progression.attempts.default_xp_reward`
                when omitted)
            timed_out: Whether the time limit expired
            time_taken_seconds: Time spent on the attempt

        Raises:
            NotFoundError: If the attempt does not exist for this learner
            StoreUnavailableError: If finalizing or awarding failed; a
                finalized attempt keeps its status and the award can be
                resolved later
        """
        attempt_id = InputValidator.validate_positive_integer(attempt_id, "attempt_id")
        learner_id = InputValidator.validate_learner_id(learner_id)
        if xp_reward is None:
            xp_reward = int(self.get_config("progression.attempts.default_xp_reward", 50))
        xp_reward = InputValidator.validate_non_negative_integer(xp_reward, "xp_reward")
        if time_taken_seconds is not None:
            time_taken_seconds = InputValidator.validate_non_negative_integer(
                time_taken_seconds, "time_taken_seconds"
            )

        async with LogContext(learner_id=learner_id, operation="submit_attempt"):
            with store_errors("submit_attempt"):
                async with DatabaseService.get_transaction() as session:
                    row = await self._attempt_repo.get_for_learner(
                        session, attempt_id, learner_id, for_update=True
                    )
                    if row is None:
                        raise NotFoundError("Attempt", attempt_id)

                    newly_finalized = not AttemptStatus(row.status).is_final
                    if newly_finalized:
                        status = AttemptStatus.TIMED_OUT if timed_out else AttemptStatus.COMPLETED
                        row.score = score_answers(row.answers or {}, questions)
                        row.status = status.value
                        row.xp_earned = xp_reward
                        row.time_taken_seconds = time_taken_seconds
                        row.completed_at = utc_now()
                        await session.flush()
                    attempt = attempt_from_row(row)

            award = await self._award_for(attempt)
            badges = await self._progression.sweep_achievements(learner_id)

            if newly_finalized:
                self.log_operation(
                    "submit_attempt",
                    learner_id=learner_id,
                    attempt_id=attempt.id,
                    status=attempt.status.value,
                    score=attempt.score,
                    max_score=attempt.max_score,
                    xp_earned=attempt.xp_earned,
                )
                await self.emit_event(
                    EVENT_ATTEMPT_FINALIZED,
                    {
                        "learner_id": learner_id,
                        "attempt_id": attempt.id,
                        "resource_id": attempt.resource_id,
                        "status": attempt.status.value,
                        "score": attempt.score,
                        "max_score": attempt.max_score,
                        "xp_earned": attempt.xp_earned,
                    },
                )

            return AttemptSubmission(
                attempt=attempt,
                award=award,
                newly_finalized=newly_finalized,
                badges=tuple(badges),
            )

    async def resolve_pending_awards(self, learner_id: str) -> List[XPAwardResult]:
        """
        Re-issue the keyed award of every final attempt.

        Awards already applied are replays and change nothing.

        Returns:
            Awards that were actually applied by this call.
        """
        learner_id = InputValidator.validate_learner_id(learner_id)

        with store_errors("resolve_pending_awards"):
            async with DatabaseService.get_session() as session:
                attempts = [attempt_from_row(row) for row in await self._attempt_repo.list_final(session, learner_id)]

        applied = []
        for attempt in attempts:
            award = await self._award_for(attempt)
            if not award.duplicate:
                applied.append(award)

        if applied:
            self.log.warning(
                "Resolved pending attempt awards",
                extra={"learner_id": learner_id, "resolved_count": len(applied)},
            )
        return applied

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    async def _award_for(self, attempt: ResourceAttempt) -> XPAwardResult:
        return await self._progression.award_xp(
            attempt.learner_id,
            attempt.xp_earned,
            f"attempt:{attempt.id}",
            reason=XPSource.ATTEMPT.value,
        )

    @staticmethod
    def _normalize_answers(answers: Mapping[Any, str]) -> Dict[str, str]:
        if not isinstance(answers, Mapping):
            raise ValidationError("answers", "Must be a mapping of question index to answer")
        normalized: Dict[str, str] = {}
        for key, value in answers.items():
            if not isinstance(value, str):
                raise ValidationError("answers", f"Answer for question {key} must be a string")
            normalized[str(key)] = value
        return normalized
