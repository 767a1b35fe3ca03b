"""
Leaderboard Service
===================

Purpose
-------
Rank learners by lifetime XP.

Domain
------
- Top learners ordered by total XP (ties broken by learner id)
- A single learner's rank
- Levels shown on the board are derived from XP, never read from the
  stored level

Design Notes
------------
- Read-only: every query uses `DatabaseService.get_session()`.
- Competition ranking: learners with equal XP share a rank, and the rank
  of a learner is 1 + the number of learners with strictly more XP.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from levelup.core.database.service import DatabaseService
from levelup.core.logging.logger import get_logger
from levelup.core.validation.input_validator import InputValidator
from levelup.database.models import LearnerStatsRow
from levelup.modules.progression.formulas import level_from_xp
from levelup.modules.progression.repositories import LearnerStatsRepository
from levelup.modules.progression.stores import store_errors
from levelup.modules.shared.base_service import BaseService
from levelup.modules.shared.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from levelup.core.config.manager import ConfigManager
    from levelup.core.event.bus import EventBus


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    learner_id: str
    total_xp: int
    level: int


class LeaderboardService(BaseService):
    """
    Service for XP leaderboard queries.

    Public Methods
    --------------
    - get_leaderboard() -> Top learners by total XP
    - get_learner_rank() -> One learner's entry
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stats_repo = LearnerStatsRepository(
            model_class=LearnerStatsRow,
            logger=get_logger(f"{__name__}.LearnerStatsRepository"),
        )

    async def get_leaderboard(self, limit: Optional[int] = None, offset: int = 0) -> List[LeaderboardEntry]:
        """
        Get top learners by total XP.

        Args:
            limit: Maximum entries (`progression.leaderboard.default_limit`
                when omitted, capped at `progression.leaderboard.max_limit`)
            offset: Number of entries to skip

        Raises:
            ValidationError: If limit/offset are invalid

        Example:
            >>> board = await service.get_leaderboard(limit=10)
            >>> for entry in board:
            ...     print(f"#{entry.rank} {entry.learner_id}: {entry.total_xp} XP")
        """
        if limit is None:
            limit = int(self.get_config("progression.leaderboard.default_limit", 50))
        limit = InputValidator.validate_positive_integer(limit, "limit")
        offset = InputValidator.validate_non_negative_integer(offset, "offset")

        max_limit = int(self.get_config("progression.leaderboard.max_limit", 100))
        if limit > max_limit:
            raise ValidationError("limit", f"Limit cannot exceed {max_limit}")

        self.log_operation("get_leaderboard", limit=limit, offset=offset)

        with store_errors("get_leaderboard"):
            async with DatabaseService.get_session() as session:
                rows = await self._stats_repo.top_by_xp(session, limit=limit, offset=offset)
                if not rows:
                    return []

                entries: List[LeaderboardEntry] = []
                rank = 1 + await self._stats_repo.count_with_more_xp(session, rows[0].total_xp)
                for position, row in enumerate(rows):
                    if position > 0 and row.total_xp != rows[position - 1].total_xp:
                        rank = offset + position + 1
                    entries.append(
                        LeaderboardEntry(
                            rank=rank,
                            learner_id=row.learner_id,
                            total_xp=int(row.total_xp),
                            level=level_from_xp(row.total_xp),
                        )
                    )
                return entries

    async def get_learner_rank(self, learner_id: str) -> LeaderboardEntry:
        """
        Raises:
            NotFoundError: If the learner has no stats yet
        """
        learner_id = InputValidator.validate_learner_id(learner_id)

        with store_errors("get_learner_rank"):
            async with DatabaseService.get_session() as session:
                row = await self._stats_repo.get_by_learner(session, learner_id)
                if row is None:
                    raise NotFoundError("LearnerStats", learner_id)

                ahead = await self._stats_repo.count_with_more_xp(session, row.total_xp)
                return LeaderboardEntry(
                    rank=ahead + 1,
                    learner_id=row.learner_id,
                    total_xp=int(row.total_xp),
                    level=level_from_xp(row.total_xp),
                )
