"""
Progression Service
===================

Purpose
-------
The only sanctioned path for changing a learner's XP, level and badges.
Reads stats with silent level reconciliation, applies idempotent XP awards
with exact level-up detection, and claims badges after re-validating their
rules against fresh data.

Domain
------
- Load stats (created zero-valued on first access), reconcile stale levels
- Award XP keyed by an idempotency key; one level-up event per crossing
- Evaluate and claim badges; sweep every claimable badge
- Grant the starter badges when a learner first signs in
- Build the achievements overview
- Let callers observe stats changes for a learner

Design Notes
------------
- Every operation takes an explicit `learner_id`.
- XP is ground truth. Levels are always derived with `level_from_xp`.
- The level before an award is derived from `new_total_xp - amount`, so
  concurrent awards each report their own crossing correctly.
- Notifications are fire-and-forget (`BaseService.emit_event`); a failed
  publish never undoes a committed award.
- Store failures propagate as `StoreUnavailableError` except for the level
  write-back, which is best-effort.

Events
------
- learner.xp_gained
- learner.leveled_up
- learner.badge_earned
- learner.stats_changed
"""

from __future__ import annotations

import inspect
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Union

from levelup.core.logging.logger import LogContext
from levelup.core.validation.input_validator import InputValidator
from levelup.database.models.enums import XPSource
from levelup.domain.models.progression import (
    AchievementsOverview,
    ActivityCounters,
    BadgeDefinition,
    BadgeEvaluation,
    ClaimResult,
    LearnerStats,
    XPAwardResult,
)
from levelup.modules.progression import rules
from levelup.modules.progression.formulas import (
    level_from_xp,
    progress_to_next_level,
    reconcile_level,
    xp_to_next_level,
)
from levelup.modules.progression.rules import BadgeCatalogTables
from levelup.modules.shared.base_service import BaseService
from levelup.modules.shared.exceptions import StoreUnavailableError

if TYPE_CHECKING:
    from logging import Logger

    from levelup.core.config.manager import ConfigManager
    from levelup.core.event.bus import EventBus
    from levelup.modules.progression.ports import (
        ActivityCountersProvider,
        BadgeStore,
        StatsStore,
    )

StatsCallback = Callable[[LearnerStats], Union[None, Awaitable[None]]]

EVENT_XP_GAINED = "learner.xp_gained"
EVENT_LEVELED_UP = "learner.leveled_up"
EVENT_BADGE_EARNED = "learner.badge_earned"
EVENT_STATS_CHANGED = "learner.stats_changed"


class ProgressionService(BaseService):
    """
    XP, level and badge operations for learners.

    Public Methods
    --------------
    - load_stats() -> Reconciled stats, created on first access
    - award_xp() -> Idempotent XP award with level-up detection
    - evaluate_badge() -> Pure badge rule evaluation
    - claim_badge() -> Re-validate and award a badge once
    - welcome_learner() -> Claim the starter badges on first sign-in
    - sweep_achievements() -> Claim every currently satisfiable badge
    - get_achievements() -> Stats, earned badges and all evaluations
    - on_stats_changed() / remove_stats_listener() -> Stats observers
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stats_store: Optional[StatsStore] = None,
        badge_store: Optional[BadgeStore] = None,
        counters_provider: Optional[ActivityCountersProvider] = None,
        catalog: Optional[BadgeCatalogTables] = None,
    ) -> None:
        """
        Initialize ProgressionService.

        Args:
            config_manager: Application configuration manager
            event_bus: Event bus used as the notification sink
            logger: Structured logger instance
            stats_store: Stats store (SQL store when omitted)
            badge_store: Badge catalogue store (SQL store when omitted)
            counters_provider: Activity counters (SQL provider when omitted)
            catalog: Legacy badge name tables (read from config when omitted)
        """
        super().__init__(config_manager, event_bus, logger)

        if stats_store is None or badge_store is None or counters_provider is None:
            from levelup.modules.progression.stores import (
                SqlActivityCounters,
                SqlBadgeStore,
                SqlStatsStore,
            )

            stats_store = stats_store or SqlStatsStore()
            badge_store = badge_store or SqlBadgeStore()
            counters_provider = counters_provider or SqlActivityCounters()

        self._stats = stats_store
        self._badges = badge_store
        self._counters = counters_provider
        self._catalog = catalog or BadgeCatalogTables.from_config(config_manager)

    # ========================================================================
    # STATS
    # ========================================================================

    async def load_stats(self, learner_id: str) -> LearnerStats:
        """
        Read a learner's stats, creating the row on first access.

        A stored level that disagrees with XP is corrected silently: the
        derived level is written back (best-effort) and returned. No level-up
        event is emitted for a correction.

        Raises:
            ValidationError: If `learner_id` is malformed
            StoreUnavailableError: If the stats row cannot be read or created
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        stored = await self._stats.upsert_stats(learner_id)
        return await self._reconcile(stored)

    async def _reconcile(self, stored: LearnerStats) -> LearnerStats:
        result = reconcile_level(stored)
        if not result.corrected:
            return stored

        context = {
            "learner_id": stored.learner_id,
            "total_xp": stored.total_xp,
            "stored_level": result.previous_level,
            "derived_level": result.current_level,
            "anomaly": result.anomaly,
        }
        if result.anomaly:
            self.log.warning("Progression integrity anomaly; overwriting stored level", extra=context)
        else:
            self.log.info("Stale level reconciled", extra=context)

        try:
            await self._stats.set_level(stored.learner_id, result.current_level)
        except StoreUnavailableError as exc:
            self.log.warning(
                "Level write-back failed; using derived level",
                extra={**context, "error_message": exc.message},
            )

        return replace(stored, current_level=result.current_level)

    # ========================================================================
    # XP AWARDS
    # ========================================================================

    async def award_xp(
        self,
        learner_id: str,
        amount: int,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> XPAwardResult:
        """
        Add `amount` XP to a learner exactly once per `idempotency_key`.

        The increment is a single relative update at the store, so
        concurrent awards all apply. A replayed key changes nothing and
        returns `duplicate=True` without events.

        Args:
            learner_id: Learner to credit
            amount: Non-negative XP amount
            idempotency_key: Identifies the award-worthy event
                (e.g. "attempt:42", "badge:xp-hunter")
            reason: Source recorded on the ledger entry

        Returns:
            XPAwardResult; `leveled_up` is True once, reporting the final
            level even when several levels were crossed.

        Raises:
            ValidationError: On malformed input
            StoreUnavailableError: If the award could not be applied
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        amount = InputValidator.validate_non_negative_integer(amount, "amount")
        idempotency_key = InputValidator.validate_idempotency_key(idempotency_key)

        async with LogContext(learner_id=learner_id, operation="award_xp"):
            before = await self.load_stats(learner_id)
            updated = await self._stats.increment_xp(
                learner_id, amount, idempotency_key, reason or XPSource.MANUAL.value
            )

            if updated is None:
                current = await self.load_stats(learner_id)
                self.log.info(
                    "XP award replayed; no change",
                    extra={"learner_id": learner_id, "idempotency_key": idempotency_key},
                )
                return XPAwardResult(
                    learner_id=learner_id,
                    amount=0,
                    previous_total_xp=current.total_xp,
                    new_total_xp=current.total_xp,
                    previous_level=current.current_level,
                    new_level=current.current_level,
                    leveled_up=False,
                    duplicate=True,
                )

            new_total_xp = updated.total_xp
            previous_total_xp = new_total_xp - amount
            if previous_total_xp < before.total_xp:
                self.log.warning(
                    "Progression integrity anomaly; total XP decreased",
                    extra={
                        "learner_id": learner_id,
                        "observed_total_xp": before.total_xp,
                        "new_total_xp": new_total_xp,
                        "amount": amount,
                        "anomaly": True,
                    },
                )

            previous_level = level_from_xp(max(previous_total_xp, 0))
            new_level = level_from_xp(new_total_xp)
            leveled_up = new_level > previous_level

            if updated.current_level != new_level:
                await self._raise_level(learner_id, new_level)

            self.log_operation(
                "award_xp",
                learner_id=learner_id,
                amount=amount,
                idempotency_key=idempotency_key,
                new_total_xp=new_total_xp,
                new_level=new_level,
                leveled_up=leveled_up,
            )

            result = XPAwardResult(
                learner_id=learner_id,
                amount=amount,
                previous_total_xp=previous_total_xp,
                new_total_xp=new_total_xp,
                previous_level=previous_level,
                new_level=new_level,
                leveled_up=leveled_up,
            )
            await self._notify_award(result, reason)
            return result

    async def _raise_level(self, learner_id: str, level: int) -> None:
        try:
            await self._stats.set_level(learner_id, level, only_if_higher=True)
        except StoreUnavailableError as exc:
            # Next load_stats reconciles it
            self.log.warning(
                "Level update after award failed",
                extra={"learner_id": learner_id, "level": level, "error_message": exc.message},
            )

    async def _notify_award(self, result: XPAwardResult, reason: Optional[str]) -> None:
        if result.amount > 0:
            await self.emit_event(
                EVENT_XP_GAINED,
                {
                    "learner_id": result.learner_id,
                    "amount": result.amount,
                    "total_xp": result.new_total_xp,
                    "reason": reason,
                },
            )
        if result.leveled_up:
            await self.emit_event(
                EVENT_LEVELED_UP,
                {
                    "learner_id": result.learner_id,
                    "previous_level": result.previous_level,
                    "new_level": result.new_level,
                    "levels_gained": result.levels_gained,
                    "total_xp": result.new_total_xp,
                },
            )
        if result.amount > 0:
            await self.emit_event(
                EVENT_STATS_CHANGED,
                {
                    "learner_id": result.learner_id,
                    "total_xp": result.new_total_xp,
                    "current_level": result.new_level,
                },
            )

    # ========================================================================
    # BADGES
    # ========================================================================

    def evaluate_badge(
        self,
        badge: BadgeDefinition,
        stats: LearnerStats,
        counters: ActivityCounters,
        earned_badge_count: int,
        already_earned: bool = False,
    ) -> BadgeEvaluation:
        """Evaluate a badge with this service's catalogue tables."""
        return rules.evaluate_badge(
            badge,
            stats,
            counters,
            earned_badge_count,
            already_earned=already_earned,
            catalog=self._catalog,
        )

    async def claim_badge(self, learner_id: str, badge_id: str) -> ClaimResult:
        """
        Claim a badge after re-validating its rule against current data.

        XP is awarded through `award_xp` with key `badge:<badge_id>` before
        the earned record is inserted, so a claim interrupted between the
        two is completed by a retry without granting XP twice. Claiming an
        earned badge is a successful no-op.

        Raises:
            ValidationError: On malformed input
            StoreUnavailableError: If a store is unreachable
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        badge_id = InputValidator.validate_identifier(badge_id, "badge_id")

        async with LogContext(learner_id=learner_id, operation="claim_badge"):
            badge = await self._badges.get_badge(badge_id)
            if badge is None:
                return ClaimResult(success=False, message="Badge not found", badge_id=badge_id)

            earned_ids = {earned.badge_id for earned in await self._badges.list_earned_badges(learner_id)}
            stats = await self.load_stats(learner_id)

            if badge.id in earned_ids:
                return ClaimResult(
                    success=True,
                    message="Badge already earned",
                    badge_id=badge.id,
                    new_xp=stats.total_xp,
                    new_level=stats.current_level,
                    already_earned=True,
                )

            counters = await self._counters.get_counters(learner_id)
            evaluation = self.evaluate_badge(badge, stats, counters, len(earned_ids))
            if not evaluation.is_met:
                self.log.info(
                    "Badge claim rejected; requirement not met",
                    extra={"learner_id": learner_id, "badge_id": badge.id, "progress": evaluation.progress},
                )
                return ClaimResult(
                    success=False,
                    message=f"Requirement not met: {evaluation.requirement_text}",
                    badge_id=badge.id,
                    new_xp=stats.total_xp,
                    new_level=stats.current_level,
                )

            award = await self.award_xp(
                learner_id,
                badge.xp_reward,
                f"badge:{badge.id}",
                reason=XPSource.BADGE.value,
            )
            inserted = await self._badges.insert_earned_badge(learner_id, badge.id)
            if not inserted:
                return ClaimResult(
                    success=True,
                    message="Badge already earned",
                    badge_id=badge.id,
                    new_xp=award.new_total_xp,
                    new_level=award.new_level,
                    already_earned=True,
                )

            self.log_operation(
                "claim_badge",
                learner_id=learner_id,
                badge_id=badge.id,
                badge_name=badge.name,
                xp_reward=badge.xp_reward,
            )
            await self.emit_event(
                EVENT_BADGE_EARNED,
                {
                    "learner_id": learner_id,
                    "badge_id": badge.id,
                    "badge_name": badge.name,
                    "icon": badge.icon,
                    "xp_reward": badge.xp_reward,
                },
            )

            return ClaimResult(
                success=True,
                message=f"Badge earned: {badge.name}",
                badge_id=badge.id,
                xp_awarded=badge.xp_reward,
                new_xp=award.new_total_xp,
                new_level=award.new_level,
                leveled_up=award.leveled_up,
            )

    async def welcome_learner(self, learner_id: str) -> List[ClaimResult]:
        """
        Create the learner's stats if needed and claim the starter badges.

        Meant for a learner's first sign-in. Calling it again is a no-op
        because every starter badge is already earned.

        Returns:
            Results of the claims that newly earned a badge.
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        await self.load_stats(learner_id)

        claimed: List[ClaimResult] = []
        for badge in await self._badges.list_badges():
            if not isinstance(rules.resolve_rule(badge, self._catalog), rules.Welcome):
                continue
            result = await self.claim_badge(learner_id, badge.id)
            if result.success and not result.already_earned:
                claimed.append(result)
        return claimed

    async def sweep_achievements(self, learner_id: str) -> List[ClaimResult]:
        """
        Claim every badge the learner currently satisfies.

        Repeats because an award can unlock further badges (XP milestones,
        level gates, badge collections). Bounded by
        `progression.achievements.max_sweep_passes`.

        Returns:
            Results of the claims that newly earned a badge.
        """
        learner_id = InputValidator.validate_learner_id(learner_id)
        max_passes = int(self.get_config("progression.achievements.max_sweep_passes", 5))

        claimed: List[ClaimResult] = []
        for _ in range(max(1, max_passes)):
            badges = await self._badges.list_badges()
            earned_ids = {earned.badge_id for earned in await self._badges.list_earned_badges(learner_id)}
            stats = await self.load_stats(learner_id)
            counters = await self._counters.get_counters(learner_id)

            candidates = [
                badge
                for badge in badges
                if badge.id not in earned_ids
                and self.evaluate_badge(badge, stats, counters, len(earned_ids)).is_met
            ]
            if not candidates:
                break

            newly_claimed = 0
            for badge in candidates:
                result = await self.claim_badge(learner_id, badge.id)
                if result.success and not result.already_earned:
                    claimed.append(result)
                    newly_claimed += 1
            if newly_claimed == 0:
                break

        if claimed:
            self.log_operation(
                "sweep_achievements",
                learner_id=learner_id,
                claimed_count=len(claimed),
            )
        return claimed

    async def get_achievements(self, learner_id: str) -> AchievementsOverview:
        """Reconciled stats, earned badges and an evaluation per catalogue badge."""
        learner_id = InputValidator.validate_learner_id(learner_id)

        stats = await self.load_stats(learner_id)
        earned = await self._badges.list_earned_badges(learner_id)
        badges = await self._badges.list_badges()
        counters = await self._counters.get_counters(learner_id)

        earned_ids = {item.badge_id for item in earned}
        evaluations = tuple(
            self.evaluate_badge(
                badge,
                stats,
                counters,
                len(earned_ids),
                already_earned=badge.id in earned_ids,
            )
            for badge in badges
        )

        return AchievementsOverview(
            stats=stats,
            progress_to_next_level=progress_to_next_level(stats.total_xp, stats.current_level),
            xp_to_next_level=xp_to_next_level(stats.total_xp, stats.current_level),
            earned=tuple(earned),
            evaluations=evaluations,
        )

    # ========================================================================
    # OBSERVERS
    # ========================================================================

    def on_stats_changed(self, learner_id: str, callback: StatsCallback) -> str:
        """
        Call `callback` with fresh `LearnerStats` whenever an award changes
        this learner's stats.

        Returns:
            Listener identifier for `remove_stats_listener()`.
        """
        learner_id = InputValidator.validate_learner_id(learner_id)

        async def _forward(payload: dict[str, Any]) -> None:
            if payload.get("learner_id") != learner_id:
                return
            outcome = callback(
                LearnerStats(
                    learner_id=learner_id,
                    total_xp=int(payload["total_xp"]),
                    current_level=int(payload["current_level"]),
                )
            )
            if inspect.isawaitable(outcome):
                await outcome

        return self._events.subscribe(
            EVENT_STATS_CHANGED,
            _forward,
            identifier=f"stats_changed:{learner_id}:{id(callback)}",
        )

    def remove_stats_listener(self, identifier: str) -> bool:
        return self._events.unsubscribe(EVENT_STATS_CHANGED, identifier)
