from __future__ import annotations

from typing import Generic, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from models.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common CRUD helpers.

    No commits are performed here - commit responsibility is left to the
    service layer.
    """

    model: Type[T]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, entity: T) -> T:
        """Add an entity to the session and flush it (not committed)."""
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def get_by_id(self, id_value: str | int, fresh: bool = False) -> Optional[T]:
        """Primary-key lookup; ``fresh`` bypasses the identity map."""
        return await self.session.get(self.model, id_value, populate_existing=fresh)
