"""
Assignment guard: the checks every match mutation goes through.

Each mutating service call loads the match fresh (never from a cache),
evaluates the temporal predicate against the caller's single ``now`` and then
commits through a compare-and-swap on the match version. A lost CAS means a
concurrent writer got there first: the caller re-reads and re-evaluates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Optional

from domain.errors import GuardError, ScheduleFormatError
from domain.schedule import Schedule, has_started, parse_schedule
from domain.types import Role
from models.match import Match
from models.user import User
from ops.ops_events import log_guard_rejection
from repositories.match_repo import MatchRepository

MAX_CAS_ATTEMPTS = 3

# Returned by a CAS attempt that lost the race.
CONFLICT = object()


def reject(operation: str, code: str, message: str, match_id: Optional[str] = None) -> GuardError:
    """Build (and log) a reason-coded rejection; the caller raises it."""
    log_guard_rejection(operation, code, match_id)
    return GuardError(code, message)


def require_role(user: User, role: Role, operation: str) -> None:
    if user.role != role.value:
        raise reject(operation, "forbidden", f"Only {role.value}s may {operation.replace('_', ' ')}")


def require_owner(match: Match, user: User, operation: str) -> None:
    if match.creator_id != user.id:
        raise reject(operation, "forbidden", "Only the organizer who created the match may do this", match.id)


def parse_or_reject(raw_date: str, raw_time: str, tz_name: str, operation: str) -> Schedule:
    try:
        return parse_schedule(raw_date, raw_time, tz_name)
    except ScheduleFormatError as e:
        raise reject(operation, "invalid_schedule", str(e)) from e


async def load_for_mutation(
    repo: MatchRepository, match_id: str, now: datetime, operation: str
) -> Match:
    """Fresh read + started check. Raises not_found / match_already_started."""
    match = await repo.get_fresh(match_id)
    if match is None:
        raise reject(operation, "not_found", "Match not found", match_id)
    if has_started(match.starts_at, now):
        raise reject(
            operation,
            "match_already_started",
            "The match has already started and can no longer be changed",
            match_id,
        )
    return match


async def with_cas_retry(
    operation: str, match_id: str, attempt: Callable[[], Awaitable[object]]
) -> object:
    """Run ``attempt`` until it returns something other than CONFLICT."""
    for _ in range(MAX_CAS_ATTEMPTS):
        result = await attempt()
        if result is not CONFLICT:
            return result
    raise reject(
        operation,
        "concurrent_modification",
        "The match was modified concurrently, please retry",
        match_id,
    )
