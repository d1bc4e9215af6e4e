"""
Rating ledger: one rating per (referee, history entry), with the referee's
average and count recomputed from the full rating set in the same transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.schedule import as_utc, utc_now
from domain.types import HistoryState, Role
from models.history_entry import HistoryEntry
from models.rating import Rating
from models.user import User
from ops.ops_events import log_rating_recorded
from repositories.history_repo import HistoryRepository
from repositories.rating_repo import RatingRepository
from repositories.user_repo import UserRepository
from services import guard

MIN_STARS = 1
MAX_STARS = 5


def _reject(code: str, message: str) -> Exception:
    return guard.reject("rate", code, message)


async def rate(
    session: AsyncSession,
    history_entry_id: str,
    referee_id: str,
    organizer: User,
    stars: int,
    comment: str = "",
    now: Optional[datetime] = None,
) -> Rating:
    guard.require_role(organizer, Role.ORGANIZER, "rate")
    now = as_utc(now or utc_now())
    history = HistoryRepository(session)
    ratings = RatingRepository(session)

    entry = await history.get_fresh(history_entry_id)
    if entry is None:
        raise _reject("not_found", "History entry not found")
    if entry.venue_id != organizer.venue_id:
        raise _reject("forbidden", "This match does not belong to your venue")
    if entry.state != HistoryState.FINALIZED.value:
        raise _reject("match_not_finalized", "Only finalized matches can be rated")
    if entry.rated:
        raise _reject("already_rated", "This match has already been rated")
    if entry.referee_id is None or entry.referee_id != referee_id:
        raise _reject("referee_mismatch", "The referee did not officiate this match")
    if await ratings.get_for_pair(referee_id, history_entry_id) is not None:
        raise _reject("already_rated", "This referee has already been rated for this match")
    if not MIN_STARS <= stars <= MAX_STARS:
        raise _reject("invalid_stars", f"Stars must be between {MIN_STARS} and {MAX_STARS}")

    comment = (comment or "").strip()
    # The conditional flip is what serializes two concurrent submissions.
    if not await history.mark_rated(entry.id, stars, comment):
        raise _reject("already_rated", "This match has already been rated")

    rating = Rating(
        referee_id=referee_id,
        organizer_id=organizer.id,
        history_entry_id=entry.id,
        stars=stars,
        comment=comment,
        created_at=now,
    )
    try:
        await ratings.add(rating)
    except IntegrityError as e:
        raise _reject("already_rated", "This referee has already been rated for this match") from e

    average, count = await UserRepository(session).recompute_rating_aggregate(referee_id)
    await session.commit()
    log_rating_recorded(referee_id, entry.id, stars, average, count)
    return rating


async def pending_ratings(session: AsyncSession, organizer: User) -> List[HistoryEntry]:
    """Finalized, unrated entries with a referee at the organizer's venue."""
    guard.require_role(organizer, Role.ORGANIZER, "view_pending_ratings")
    if organizer.venue_id is None:
        return []
    return await HistoryRepository(session).pending_ratings_for_venue(organizer.venue_id)


async def referee_history(session: AsyncSession, referee_id: str) -> Dict[str, Any]:
    referee = await UserRepository(session).get_by_id(referee_id, fresh=True)
    if referee is None or referee.role != Role.REFEREE.value:
        raise guard.reject("referee_history", "not_found", "Referee not found")

    entries = await HistoryRepository(session).finalized_for_referee(referee_id)
    by_entry = {r.history_entry_id: r for r in await RatingRepository(session).list_for_referee(referee_id)}

    matches = []
    for entry in entries:
        item = history_to_dict(entry)
        rating = by_entry.get(entry.id)
        if rating is not None:
            item["rating"] = {
                "stars": rating.stars,
                "comment": rating.comment,
                "organizer_name": rating.organizer.name,
                "created_at": as_utc(rating.created_at).isoformat(),
            }
        else:
            item["rating"] = None
        matches.append(item)

    return {
        "referee": {
            "id": referee.id,
            "name": referee.name,
            "email": referee.email,
            "rating_average": referee.rating_average,
            "rating_count": referee.rating_count,
        },
        "matches": matches,
    }


async def monthly_report(
    session: AsyncSession, organizer: User, month: int, year: int
) -> Dict[str, Any]:
    """Reporting feed for one venue and month: entries plus counts per state."""
    guard.require_role(organizer, Role.ORGANIZER, "view_report")
    if organizer.venue_id is None:
        raise guard.reject("view_report", "forbidden", "Organizer has no venue")
    repo = HistoryRepository(session)
    entries = await repo.list_for_venue_month(organizer.venue_id, month, year)
    counts = await repo.count_by_state_for_venue_month(organizer.venue_id, month, year)
    return {
        "venue_id": organizer.venue_id,
        "month": month,
        "year": year,
        "total": len(entries),
        "finalized": counts.get(HistoryState.FINALIZED.value, 0),
        "cancelled": counts.get(HistoryState.CANCELLED.value, 0),
        "entries": [history_to_dict(e) for e in entries],
    }


def history_to_dict(entry: HistoryEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "original_match_id": entry.original_match_id,
        "name": entry.name,
        "date": entry.date,
        "time": entry.time,
        "location": entry.location,
        "venue_id": entry.venue_id,
        "referee_id": entry.referee_id,
        "referee_name": entry.referee_name,
        "state": entry.state,
        "reason": entry.reason,
        "archived_at": as_utc(entry.archived_at).isoformat(),
        "month": entry.match_month,
        "year": entry.match_year,
        "rated": entry.rated,
        "rating_stars": entry.rating_stars,
        "rating_comment": entry.rating_comment,
    }
