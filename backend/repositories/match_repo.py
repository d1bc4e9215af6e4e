from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from models.match import Match
from models.match_applicant import MatchApplicant
from .base import BaseRepository


class MatchRepository(BaseRepository[Match]):
    """Repository for active matches and their applicant sets.

    Writes that change a match's assignment state go through
    compare_and_swap so concurrent writers to the same match serialize on the
    ``version`` column instead of an application lock.
    """

    model = Match

    async def get_fresh(self, match_id: str) -> Optional[Match]:
        """Load a match (referee and applicants included), bypassing the identity map."""
        stmt = (
            select(Match)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_active(self) -> List[Match]:
        """All active matches, earliest first."""
        stmt = select(Match).order_by(Match.starts_at, Match.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_creator(self, creator_id: str) -> List[Match]:
        stmt = (
            select(Match)
            .where(Match.creator_id == creator_id)
            .order_by(Match.starts_at, Match.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_venue(self, venue_id: Optional[str]) -> List[Match]:
        stmt = select(Match).order_by(Match.starts_at, Match.id)
        if venue_id:
            stmt = stmt.where(Match.venue_id == venue_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def names_for_creator_on_date(
        self, creator_id: str, date: str, exclude_id: Optional[str] = None
    ) -> List[str]:
        """Names of the organizer's active matches on a canonical date (uses index)."""
        stmt = select(Match.name).where(Match.creator_id == creator_id, Match.date == date)
        if exclude_id is not None:
            stmt = stmt.where(Match.id != exclude_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_creator(
        self,
        creator_id: str,
        starting_from: Optional[datetime] = None,
        unassigned_only: bool = False,
    ) -> int:
        stmt = select(func.count(Match.id)).where(Match.creator_id == creator_id)
        if starting_from is not None:
            stmt = stmt.where(Match.starts_at >= starting_from)
        if unassigned_only:
            stmt = stmt.where(Match.referee_id.is_(None))
        return int((await self.session.execute(stmt)).scalar_one())

    async def compare_and_swap(
        self, match_id: str, expected_version: int, **values: Any
    ) -> bool:
        """Apply ``values`` and bump the version iff the row is still at ``expected_version``."""
        stmt = (
            update(Match)
            .where(Match.id == match_id, Match.version == expected_version)
            .values(version=Match.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def delete_if_version(self, match_id: str, expected_version: int) -> bool:
        """Delete the match and its applicants iff it is still at ``expected_version``."""
        stmt = (
            delete(Match)
            .where(Match.id == match_id, Match.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            return False
        await self.session.execute(
            delete(MatchApplicant)
            .where(MatchApplicant.match_id == match_id)
            .execution_options(synchronize_session=False)
        )
        return True

    async def add_applicant(self, match_id: str, referee_id: str, applied_at: datetime) -> bool:
        """Insert into the applicant set; False if the referee was already in it."""
        try:
            async with self.session.begin_nested():
                await self.session.execute(
                    insert(MatchApplicant).values(
                        match_id=match_id, referee_id=referee_id, applied_at=applied_at
                    )
                )
        except IntegrityError:
            return False
        return True

    async def remove_applicant(self, match_id: str, referee_id: str) -> bool:
        """Remove from the applicant set; False if the referee was not in it."""
        result = await self.session.execute(
            delete(MatchApplicant)
            .where(
                MatchApplicant.match_id == match_id,
                MatchApplicant.referee_id == referee_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
