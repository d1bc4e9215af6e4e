from __future__ import annotations

from typing import Tuple

from sqlalchemy import func, select, update

from models.rating import Rating
from models.user import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User entities (read access plus rating aggregates)."""

    model = User

    async def recompute_rating_aggregate(self, referee_id: str) -> Tuple[float, int]:
        """Derive average/count from the referee's full rating set and store them."""
        stmt = select(func.avg(Rating.stars), func.count(Rating.id)).where(
            Rating.referee_id == referee_id
        )
        avg, count = (await self.session.execute(stmt)).one()
        average = float(avg or 0.0)
        count = int(count or 0)
        await self.session.execute(
            update(User)
            .where(User.id == referee_id)
            .values(rating_average=average, rating_count=count)
            .execution_options(synchronize_session=False)
        )
        return average, count
