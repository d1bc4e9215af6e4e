"""
Postulation ledger and referee assignment.

Every operation re-reads the match, re-evaluates the guard and then wins or
loses a compare-and-swap on the match version before touching the applicant
set, so two concurrent applies cannot both take the last slot and two
concurrent assigns cannot both succeed.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from domain.schedule import as_utc, utc_now
from domain.types import APPLICANT_CAP, Role
from models.match import Match
from models.user import User
from repositories.match_repo import MatchRepository
from services import guard
from services.notifications import (
    REFEREE_ASSIGNED,
    REFEREE_REPLACED,
    REFEREE_UNASSIGNED,
    Notifier,
    dispatch_safely,
    events_for,
)


async def apply(
    session: AsyncSession,
    referee: User,
    match_id: str,
    now: Optional[datetime] = None,
) -> Match:
    """Add the calling referee to the match's applicant set."""
    guard.require_role(referee, Role.REFEREE, "apply")
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "apply")
        if match.referee_id is not None:
            raise guard.reject(
                "apply", "referee_already_assigned", "This match already has a referee", match_id
            )
        if referee.id in match.applicant_ids:
            raise guard.reject(
                "apply", "already_postulated", "You have already applied to this match", match_id
            )
        if len(match.applicants) >= APPLICANT_CAP:
            raise guard.reject(
                "apply",
                "postulation_cap_reached",
                f"This match already has {APPLICANT_CAP} applicants",
                match_id,
            )
        if not await repo.compare_and_swap(match.id, match.version, updated_at=now):
            return guard.CONFLICT
        if not await repo.add_applicant(match.id, referee.id, now):
            raise guard.reject(
                "apply", "already_postulated", "You have already applied to this match", match_id
            )
        return await repo.get_fresh(match.id)

    match = await guard.with_cas_retry("apply", match_id, attempt)
    await session.commit()
    return match  # type: ignore[return-value]


async def cancel_application(
    session: AsyncSession,
    referee: User,
    match_id: str,
    now: Optional[datetime] = None,
) -> Match:
    """Withdraw the calling referee from the applicant set."""
    guard.require_role(referee, Role.REFEREE, "cancel_application")
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "cancel_application")
        if referee.id not in match.applicant_ids:
            raise guard.reject(
                "cancel_application", "not_postulated", "You have not applied to this match", match_id
            )
        if not await repo.compare_and_swap(match.id, match.version, updated_at=now):
            return guard.CONFLICT
        await repo.remove_applicant(match.id, referee.id)
        return await repo.get_fresh(match.id)

    match = await guard.with_cas_retry("cancel_application", match_id, attempt)
    await session.commit()
    return match  # type: ignore[return-value]


async def assign(
    session: AsyncSession,
    organizer: User,
    match_id: str,
    referee_id: str,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> Match:
    """Assign one of the applicants; they leave the applicant set in the same write."""
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "assign")
        guard.require_owner(match, organizer, "assign")
        if match.referee_id is not None:
            raise guard.reject(
                "assign",
                "referee_already_assigned",
                "This match already has a referee; substitute instead",
                match_id,
            )
        if referee_id not in match.applicant_ids:
            raise guard.reject(
                "assign", "not_postulated", "The referee has not applied to this match", match_id
            )
        if not await repo.compare_and_swap(
            match.id, match.version, referee_id=referee_id, updated_at=now
        ):
            return guard.CONFLICT
        await repo.remove_applicant(match.id, referee_id)
        return await repo.get_fresh(match.id)

    match: Match = await guard.with_cas_retry("assign", match_id, attempt)  # type: ignore[assignment]
    await session.commit()
    await dispatch_safely(notifier, events_for(REFEREE_ASSIGNED, match, [match.referee]))
    return match


async def substitute(
    session: AsyncSession,
    organizer: User,
    match_id: str,
    new_referee_id: str,
    reason: str,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> Match:
    """
    Replace the assigned referee with an applicant. The previous referee goes
    back into the applicant set, so the set size is unchanged.
    """
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)
    previous: List[User] = []

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "substitute")
        guard.require_owner(match, organizer, "substitute")
        if match.referee_id is None:
            raise guard.reject(
                "substitute", "no_referee_assigned", "There is no referee to substitute", match_id
            )
        if new_referee_id not in match.applicant_ids:
            raise guard.reject(
                "substitute",
                "not_postulated",
                "The new referee has not applied to this match",
                match_id,
            )
        outgoing = match.referee
        if not await repo.compare_and_swap(
            match.id, match.version, referee_id=new_referee_id, updated_at=now
        ):
            return guard.CONFLICT
        await repo.remove_applicant(match.id, new_referee_id)
        await repo.add_applicant(match.id, outgoing.id, now)
        previous[:] = [outgoing]
        return await repo.get_fresh(match.id)

    match: Match = await guard.with_cas_retry("substitute", match_id, attempt)  # type: ignore[assignment]
    await session.commit()
    events = events_for(
        REFEREE_REPLACED, match, previous, reason=reason, new_referee_name=match.referee.name
    )
    events += events_for(REFEREE_ASSIGNED, match, [match.referee], reason=reason)
    await dispatch_safely(notifier, events)
    return match


async def unassign(
    session: AsyncSession,
    organizer: User,
    match_id: str,
    reason: str,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> Match:
    """Clear the referee; they rejoin the applicant set and the match reopens."""
    now = as_utc(now or utc_now())
    repo = MatchRepository(session)
    previous: List[User] = []

    async def attempt() -> object:
        match = await guard.load_for_mutation(repo, match_id, now, "unassign")
        guard.require_owner(match, organizer, "unassign")
        if match.referee_id is None:
            raise guard.reject(
                "unassign", "no_referee_assigned", "There is no referee to unassign", match_id
            )
        outgoing = match.referee
        if not await repo.compare_and_swap(
            match.id, match.version, referee_id=None, updated_at=now
        ):
            return guard.CONFLICT
        await repo.add_applicant(match.id, outgoing.id, now)
        previous[:] = [outgoing]
        return await repo.get_fresh(match.id)

    match: Match = await guard.with_cas_retry("unassign", match_id, attempt)  # type: ignore[assignment]
    await session.commit()
    await dispatch_safely(notifier, events_for(REFEREE_UNASSIGNED, match, previous, reason=reason))
    return match


async def list_applicants(session: AsyncSession, match_id: str) -> List[User]:
    match = await MatchRepository(session).get_fresh(match_id)
    if match is None:
        raise guard.reject("list_applicants", "not_found", "Match not found", match_id)
    return [a.referee for a in match.applicants]
