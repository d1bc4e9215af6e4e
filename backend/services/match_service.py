"""Match creation, edition, deletion and read projections."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from domain.schedule import LEAD_TIME, as_utc, has_started, utc_now
from domain.team_names import find_shared_team
from domain.types import ArchiveReason, HistoryState, MatchStatus, Role
from models.history_entry import HistoryEntry
from models.match import Match
from models.user import User
from ops.ops_events import log_match_archived
from repositories.history_repo import HistoryRepository
from repositories.match_repo import MatchRepository
from repositories.venue_repo import LocationRepository, VenueRepository
from services import guard
from services.archival_service import history_entry_from_match, recipients_of
from services.notifications import MATCH_CANCELLED, Notifier, dispatch_safely, events_for

_EDITABLE_FIELDS = ("name", "location")
_CLEARABLE_FIELDS = ("venue_id", "location_id")


async def _check_team_names(
    repo: MatchRepository,
    operation: str,
    creator_id: str,
    name: str,
    date: str,
    exclude_id: Optional[str] = None,
) -> None:
    existing = await repo.names_for_creator_on_date(creator_id, date, exclude_id=exclude_id)
    shared = find_shared_team(name, existing)
    if shared:
        raise guard.reject(
            operation,
            "duplicate_team_name",
            f'A match with team "{shared}" is already scheduled for {date}.',
            exclude_id,
        )


async def _check_placement(
    session: AsyncSession,
    organizer: User,
    operation: str,
    venue_id: Optional[str],
    location_id: Optional[str],
    match_id: Optional[str] = None,
) -> None:
    """Referenced venue and location must exist; the location must be the organizer's."""
    if venue_id is not None and await VenueRepository(session).get_by_id(venue_id) is None:
        raise guard.reject(operation, "not_found", "Venue not found", match_id)
    if location_id is None:
        return
    place = await LocationRepository(session).get_by_id(location_id)
    if place is None:
        raise guard.reject(operation, "not_found", "Location not found", match_id)
    if place.organizer_id != organizer.id and place.venue_id != (venue_id or organizer.venue_id):
        raise guard.reject(operation, "forbidden", "Location belongs to another venue", match_id)


async def create_match(
    session: AsyncSession,
    organizer: User,
    *,
    name: str,
    date: str,
    time: str,
    location: str,
    venue_id: Optional[str] = None,
    location_id: Optional[str] = None,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Match:
    """
    Create a scheduled match.

    Rejects: forbidden (not an organizer), invalid_schedule, past_date,
    lead_time_violation (< 2 h notice), duplicate_team_name, not_found
    (unknown venue or location).
    """
    guard.require_role(organizer, Role.ORGANIZER, "create")
    now = as_utc(now or utc_now())
    schedule = guard.parse_or_reject(date, time, tz_name or get_settings().match_timezone, "create")

    if schedule.starts_at < now:
        raise guard.reject("create", "past_date", "A match cannot be created in the past")
    if schedule.starts_at < now + LEAD_TIME:
        raise guard.reject(
            "create",
            "lead_time_violation",
            "A match must be scheduled at least 2 hours in advance",
        )

    await _check_placement(session, organizer, "create", venue_id, location_id)
    repo = MatchRepository(session)
    await _check_team_names(repo, "create", organizer.id, name, schedule.date)

    match = Match(
        id=uuid4().hex,
        name=name.strip(),
        date=schedule.date,
        time=schedule.time,
        starts_at=schedule.starts_at,
        location=location,
        creator_id=organizer.id,
        venue_id=venue_id or organizer.venue_id,
        location_id=location_id,
        status=MatchStatus.SCHEDULED.value,
        version=1,
        created_at=now,
        updated_at=now,
        referee=None,
        applicants=[],
    )
    await repo.add(match)
    await session.commit()
    return match


async def update_match(
    session: AsyncSession,
    organizer: User,
    match_id: str,
    changes: Dict[str, Any],
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Match:
    """
    Partial update of an unstarted match by its creator.

    Keys absent from ``changes`` are left alone; ``venue_id`` and
    ``location_id`` may be cleared with None. A date or time key present in
    ``changes`` must parse, even when empty.
    """
    now = as_utc(now or utc_now())
    tz_name = tz_name or get_settings().match_timezone
    repo = MatchRepository(session)

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "edit")
        guard.require_owner(match, organizer, "edit")

        values: Dict[str, Any] = {
            k: changes[k] for k in _EDITABLE_FIELDS if changes.get(k) is not None
        }
        values.update({k: changes[k] for k in _CLEARABLE_FIELDS if k in changes})
        if "venue_id" in values or "location_id" in values:
            await _check_placement(
                session,
                organizer,
                "edit",
                values.get("venue_id", match.venue_id),
                values.get("location_id", match.location_id),
                match.id,
            )
        if "date" in changes or "time" in changes:
            schedule = guard.parse_or_reject(
                changes["date"] if "date" in changes else match.date,
                changes["time"] if "time" in changes else match.time,
                tz_name,
                "edit",
            )
            if schedule.starts_at < now:
                raise guard.reject("edit", "past_date", "A match cannot be moved into the past", match_id)
            values.update(date=schedule.date, time=schedule.time, starts_at=schedule.starts_at)
        if "name" in values or "date" in values:
            await _check_team_names(
                repo,
                "edit",
                match.creator_id,
                values.get("name", match.name),
                values.get("date", match.date),
                exclude_id=match.id,
            )

        values["updated_at"] = now
        if not await repo.compare_and_swap(match.id, match.version, **values):
            return guard.CONFLICT
        return await repo.get_fresh(match.id)

    updated = await guard.with_cas_retry("edit", match_id, attempt)
    await session.commit()
    return updated  # type: ignore[return-value]


async def delete_match(
    session: AsyncSession,
    organizer: User,
    match_id: str,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> HistoryEntry:
    """
    Cancel an unstarted match: record a Cancelled/manual history entry and
    remove the match in the same transaction, then notify its referee and
    applicants.
    """
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "delete")
        guard.require_owner(match, organizer, "delete")
        events = events_for(MATCH_CANCELLED, match, recipients_of(match))
        entry = history_entry_from_match(match, HistoryState.CANCELLED, ArchiveReason.MANUAL, now)
        if not await repo.delete_if_version(match.id, match.version):
            return guard.CONFLICT
        await HistoryRepository(session).add(entry)
        return entry, events

    entry, events = await guard.with_cas_retry("delete", match_id, attempt)  # type: ignore[misc]
    await session.commit()
    log_match_archived(match_id, entry.id, entry.state, entry.reason)
    await dispatch_safely(notifier, events)
    return entry


async def get_match(session: AsyncSession, match_id: str) -> Match:
    match = await MatchRepository(session).get_fresh(match_id)
    if match is None:
        raise guard.reject("get", "not_found", "Match not found", match_id)
    return match


async def list_matches(
    session: AsyncSession, user: User, venue_id: Optional[str] = None
) -> List[Match]:
    """Organizers see their own matches; referees see every match, optionally by venue."""
    repo = MatchRepository(session)
    if user.role == Role.ORGANIZER.value:
        return await repo.list_for_creator(user.id)
    return await repo.list_for_venue(venue_id)


async def organizer_stats(
    session: AsyncSession, organizer: User, now: Optional[datetime] = None
) -> Dict[str, int]:
    guard.require_role(organizer, Role.ORGANIZER, "view_stats")
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)
    return {
        "total": await repo.count_for_creator(organizer.id),
        "upcoming": await repo.count_for_creator(organizer.id, starting_from=now),
        "needs_referee": await repo.count_for_creator(organizer.id, unassigned_only=True),
    }


def _user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "rating_average": user.rating_average,
        "rating_count": user.rating_count,
    }


def match_to_dict(match: Match, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = as_utc(now or utc_now())
    return {
        "id": match.id,
        "name": match.name,
        "date": match.date,
        "time": match.time,
        "starts_at": as_utc(match.starts_at).isoformat(),
        "location": match.location,
        "venue_id": match.venue_id,
        "location_id": match.location_id,
        "creator_id": match.creator_id,
        "status": match.status,
        "started": has_started(match.starts_at, now),
        "referee": _user_summary(match.referee),
        "applicants": [_user_summary(a.referee) for a in match.applicants],
        "version": match.version,
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return _user_summary(user)  # type: ignore[return-value]
