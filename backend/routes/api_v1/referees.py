"""GET /api/v1/referees/{id}/history: referee profile with rated matches."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import get_current_user, get_db_session
from models.user import User
from services.rating_service import referee_history

router = APIRouter(prefix="/referees", tags=["referees"])


@router.get("/{referee_id}/history", summary="Referee aggregates and latest finalized matches")
async def get_referee_history(
    referee_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return await referee_history(session, referee_id)
