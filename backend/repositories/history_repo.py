from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select, update

from domain.types import HistoryState
from models.history_entry import HistoryEntry
from .base import BaseRepository


class HistoryRepository(BaseRepository[HistoryEntry]):
    """Repository for archived matches. Entries are never deleted."""

    model = HistoryEntry

    async def get_fresh(self, entry_id: str) -> Optional[HistoryEntry]:
        return await self.get_by_id(entry_id, fresh=True)

    async def get_by_original_match_id(self, match_id: str) -> Optional[HistoryEntry]:
        stmt = (
            select(HistoryEntry)
            .where(HistoryEntry.original_match_id == match_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def mark_rated(self, entry_id: str, stars: int, comment: str) -> bool:
        """Flip ``rated`` exactly once; False if it was already flipped or not Finalized."""
        stmt = (
            update(HistoryEntry)
            .where(
                HistoryEntry.id == entry_id,
                HistoryEntry.rated.is_(False),
                HistoryEntry.state == HistoryState.FINALIZED.value,
            )
            .values(rated=True, rating_stars=stars, rating_comment=comment)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def pending_ratings_for_venue(self, venue_id: str) -> List[HistoryEntry]:
        """Finalized, unrated entries with a referee for one venue, newest first."""
        stmt = (
            select(HistoryEntry)
            .where(
                HistoryEntry.venue_id == venue_id,
                HistoryEntry.referee_id.is_not(None),
                HistoryEntry.rated.is_(False),
                HistoryEntry.state == HistoryState.FINALIZED.value,
            )
            .order_by(HistoryEntry.archived_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def finalized_for_referee(self, referee_id: str, limit: int = 20) -> List[HistoryEntry]:
        stmt = (
            select(HistoryEntry)
            .where(
                HistoryEntry.referee_id == referee_id,
                HistoryEntry.state == HistoryState.FINALIZED.value,
            )
            .order_by(HistoryEntry.archived_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_venue_month(
        self, venue_id: str, month: int, year: int
    ) -> List[HistoryEntry]:
        """Reporting window (uses ix_history_venue_month_year)."""
        stmt = (
            select(HistoryEntry)
            .where(
                HistoryEntry.venue_id == venue_id,
                HistoryEntry.match_month == month,
                HistoryEntry.match_year == year,
            )
            .order_by(HistoryEntry.date, HistoryEntry.time)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_state_for_venue_month(
        self, venue_id: str, month: int, year: int
    ) -> dict:
        stmt = (
            select(HistoryEntry.state, func.count(HistoryEntry.id))
            .where(
                HistoryEntry.venue_id == venue_id,
                HistoryEntry.match_month == month,
                HistoryEntry.match_year == year,
            )
            .group_by(HistoryEntry.state)
        )
        result = await self.session.execute(stmt)
        return {state: int(n) for state, n in result.all()}
