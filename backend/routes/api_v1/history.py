"""History endpoints: pending ratings, on-demand sweep and the monthly report feed."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import get_current_user, get_db_session, get_notifier
from domain.types import Role
from models.user import User
from services.archival_service import run_sweep
from services.notifications import Notifier
from services.rating_service import history_to_dict, monthly_report, pending_ratings

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/pending-ratings", summary="Finalized matches awaiting a rating")
async def get_pending_ratings(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    entries = await pending_ratings(session, user)
    return {"pending": [history_to_dict(e) for e in entries]}


@router.post(
    "/verify",
    summary="Run the archival sweep now",
    description="Archives every finished match, then returns the caller's pending ratings (empty for referees). Safe to call repeatedly.",
)
async def post_verify(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    # The sweep opens one session per match; release this one's transaction first.
    await session.commit()
    result = await run_sweep(notifier)
    # Referees may trigger the sweep too; only organizers have ratings to give.
    entries = await pending_ratings(session, user) if user.role == Role.ORGANIZER.value else []
    return {
        "finalized": result.finalized_count,
        "failed": len(result.failed_ids),
        "pending": [history_to_dict(e) for e in entries],
    }


@router.get("/report", summary="Monthly history feed for the organizer's venue")
async def get_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return await monthly_report(session, user, month, year)
