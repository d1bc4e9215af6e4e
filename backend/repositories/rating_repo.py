from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from models.rating import Rating
from .base import BaseRepository


class RatingRepository(BaseRepository[Rating]):
    """Append-only access to ratings."""

    model = Rating

    async def get_for_pair(self, referee_id: str, history_entry_id: str) -> Optional[Rating]:
        stmt = select(Rating).where(
            Rating.referee_id == referee_id,
            Rating.history_entry_id == history_entry_id,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_referee(self, referee_id: str) -> List[Rating]:
        stmt = (
            select(Rating)
            .where(Rating.referee_id == referee_id)
            .order_by(Rating.created_at.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
