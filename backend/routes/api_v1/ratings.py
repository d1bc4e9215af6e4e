"""POST /api/v1/ratings: rate the referee of a finalized match."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import get_current_user, get_db_session
from models.user import User
from repositories.user_repo import UserRepository
from services.rating_service import rate

router = APIRouter(prefix="/ratings", tags=["ratings"])


class RatingBody(BaseModel):
    """
    Body for POST /ratings.

    history_entry_id is the archived match; referee_id must be the referee recorded on it.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "history_entry_id": "6f1c0d1e8a2b4c3d9e7f",
                "referee_id": "ref-1",
                "stars": 4,
                "comment": "Good positioning, consistent calls",
            }
        }
    )

    history_entry_id: str
    referee_id: str
    stars: int = Field(..., ge=1, le=5, description="1 to 5")
    comment: str = Field(default="", max_length=2000)


@router.post("", status_code=201, summary="Rate a referee once per finalized match")
async def post_rating(
    body: RatingBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Returns the stored rating and the referee's recomputed average and count."""
    rating = await rate(
        session,
        body.history_entry_id,
        body.referee_id,
        user,
        body.stars,
        body.comment,
    )
    referee = await UserRepository(session).get_by_id(body.referee_id, fresh=True)
    return {
        "message": "Rating recorded",
        "rating": {
            "id": rating.id,
            "referee_id": rating.referee_id,
            "history_entry_id": rating.history_entry_id,
            "stars": rating.stars,
            "comment": rating.comment,
        },
        "rating_average": referee.rating_average if referee else None,
        "rating_count": referee.rating_count if referee else None,
    }
