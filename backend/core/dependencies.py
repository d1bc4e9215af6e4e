from typing import AsyncGenerator, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from domain.errors import GuardError
from models.user import User
from repositories.user_repo import UserRepository
from services.notifications import LoggingNotifier, Notifier

from .database import get_database_manager

_notifier: Notifier = LoggingNotifier()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding an AsyncSession from the DatabaseManager."""
    manager = get_database_manager()
    async with manager.session() as session:
        yield session


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the caller from the identity header set by the auth gateway."""
    if not x_user_id:
        raise GuardError("unauthenticated", "Missing caller identity")
    user = await UserRepository(session).get_by_id(x_user_id)
    if user is None:
        raise GuardError("unauthenticated", "Unknown caller")
    return user


def get_notifier() -> Notifier:
    """FastAPI dependency returning the notification dispatcher."""
    return _notifier
