"""
Resource attempt repository.

Pure data access for `resource_attempts`; the attempt service owns the
transactions and status rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from levelup.database.models import AttemptStatus, ResourceAttemptRow
from levelup.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class ResourceAttemptRepository(BaseRepository[ResourceAttemptRow]):
    """Repository for ResourceAttemptRow."""

    async def find_in_progress(
        self, session: AsyncSession, learner_id: str, resource_id: str
    ) -> Optional[ResourceAttemptRow]:
        """Most recent in-progress attempt for the learner and resource."""
        attempts = await self.find_many_where(
            session,
            ResourceAttemptRow.learner_id == learner_id,
            ResourceAttemptRow.resource_id == resource_id,
            ResourceAttemptRow.status == AttemptStatus.IN_PROGRESS.value,
            order_by=[ResourceAttemptRow.started_at.desc(), ResourceAttemptRow.id.desc()],
            limit=1,
        )
        return attempts[0] if attempts else None

    async def get_for_learner(
        self,
        session: AsyncSession,
        attempt_id: int,
        learner_id: str,
        for_update: bool = False,
    ) -> Optional[ResourceAttemptRow]:
        return await self.find_one_where(
            session,
            ResourceAttemptRow.id == attempt_id,
            ResourceAttemptRow.learner_id == learner_id,
            for_update=for_update,
        )

    async def list_final(self, session: AsyncSession, learner_id: str) -> List[ResourceAttemptRow]:
        return await self.find_many_where(
            session,
            ResourceAttemptRow.learner_id == learner_id,
            ResourceAttemptRow.status.in_(AttemptStatus.final_values()),
            order_by=[ResourceAttemptRow.id.asc()],
        )
