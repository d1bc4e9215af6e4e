"""Match endpoints: create/edit/delete, postulation and referee assignment."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from core.dependencies import get_current_user, get_db_session, get_notifier
from models.user import User
from services import match_service, postulation_service
from services.match_service import match_to_dict, user_to_dict
from services.notifications import Notifier

router = APIRouter(prefix="/matches", tags=["matches"])


class CreateMatchBody(BaseModel):
    """
    Body for POST /matches.

    date accepts DD/MM/YYYY or YYYY-MM-DD and is stored as YYYY-MM-DD; time is HH:MM
    in the venue timezone.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Tigres vs Pumas",
                "date": "21/11/2026",
                "time": "18:30",
                "location": "Cancha 2",
            }
        }
    )

    name: str = Field(..., min_length=1, max_length=200)
    date: str = Field(..., description="DD/MM/YYYY or YYYY-MM-DD")
    time: str = Field(..., description="HH:MM")
    location: str = Field(..., min_length=1, max_length=300)
    venue_id: Optional[str] = None
    location_id: Optional[str] = None


class UpdateMatchBody(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = Field(default=None, min_length=1, max_length=300)
    venue_id: Optional[str] = None
    location_id: Optional[str] = None


class AssignBody(BaseModel):
    referee_id: str


class SubstituteBody(BaseModel):
    new_referee_id: str
    reason: str = Field(..., min_length=10, description="Forwarded to the affected referees")


class UnassignBody(BaseModel):
    reason: str = Field(..., min_length=10, description="Forwarded to the unassigned referee")


@router.post("", status_code=201, summary="Create a match")
async def post_match(
    body: CreateMatchBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    match = await match_service.create_match(
        session,
        user,
        name=body.name,
        date=body.date,
        time=body.time,
        location=body.location,
        venue_id=body.venue_id,
        location_id=body.location_id,
    )
    return {"message": "Match created", "match": match_to_dict(match)}


@router.get("", summary="List active matches")
async def get_matches(
    venue_id: Optional[str] = Query(default=None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    """Organizers get their own matches; referees get every match (optionally one venue)."""
    matches = await match_service.list_matches(session, user, venue_id)
    return {"matches": [match_to_dict(m) for m in matches]}


@router.get("/stats", summary="Organizer dashboard counters")
async def get_stats(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return await match_service.organizer_stats(session, user)


@router.get("/{match_id}", summary="Get one active match")
async def get_match(
    match_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    return match_to_dict(await match_service.get_match(session, match_id))


@router.patch("/{match_id}", summary="Edit an unstarted match")
async def patch_match(
    match_id: str,
    body: UpdateMatchBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    match = await match_service.update_match(
        session, user, match_id, body.model_dump(exclude_unset=True)
    )
    return {"message": "Match updated", "match": match_to_dict(match)}


@router.delete("/{match_id}", summary="Cancel an unstarted match")
async def delete_match(
    match_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    """Moves the match to history as Cancelled/manual and notifies its referees."""
    entry = await match_service.delete_match(session, user, match_id, notifier)
    return {"message": "Match cancelled", "history_entry_id": entry.id}


@router.post("/{match_id}/apply", summary="Apply to referee a match")
async def post_apply(
    match_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    match = await postulation_service.apply(session, user, match_id)
    return {"message": "Application registered", "match": match_to_dict(match)}


@router.post("/{match_id}/cancel-application", summary="Withdraw an application")
async def post_cancel_application(
    match_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    match = await postulation_service.cancel_application(session, user, match_id)
    return {"message": "Application withdrawn", "match": match_to_dict(match)}


@router.get("/{match_id}/applicants", summary="List applicants with their ratings")
async def get_applicants(
    match_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> dict:
    referees = await postulation_service.list_applicants(session, match_id)
    return {"applicants": [user_to_dict(r) for r in referees]}


@router.post("/{match_id}/assign", summary="Assign an applicant as referee")
async def post_assign(
    match_id: str,
    body: AssignBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    match = await postulation_service.assign(session, user, match_id, body.referee_id, notifier)
    return {"message": "Referee assigned", "match": match_to_dict(match)}


@router.post("/{match_id}/substitute", summary="Replace the assigned referee")
async def post_substitute(
    match_id: str,
    body: SubstituteBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    match = await postulation_service.substitute(
        session, user, match_id, body.new_referee_id, body.reason, notifier
    )
    return {"message": "Referee substituted", "match": match_to_dict(match)}


@router.post("/{match_id}/unassign", summary="Remove the assigned referee")
async def post_unassign(
    match_id: str,
    body: UnassignBody,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    match = await postulation_service.unassign(session, user, match_id, body.reason, notifier)
    return {"message": "Referee unassigned", "match": match_to_dict(match)}
