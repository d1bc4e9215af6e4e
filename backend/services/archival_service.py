"""
Archival sweep: move finished matches into the history collection.

A tick loads every active match with its referee and applicants resolved,
classifies all of them against one ``now`` and archives each finished match in
its own transaction: insert the Finalized/automatic HistoryEntry, then delete
the match conditioned on the version that was read. The commit of that
transaction is the only point at which the archival becomes visible; the unique
``original_match_id`` makes a second archival of the same match impossible.

Failures are isolated per match: the error is logged, the match stays active
and is picked up again by the next tick.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from core.database import DatabaseManager, get_database_manager
from domain.schedule import as_utc, has_finished, utc_now
from domain.types import UNASSIGNED_REFEREE_NAME, ArchiveReason, HistoryState
from models.history_entry import HistoryEntry
from models.match import Match
from models.user import User
from ops.ops_events import log_match_archived, log_sweep_end, log_sweep_start
from repositories.history_repo import HistoryRepository
from repositories.match_repo import MatchRepository
from services.notifications import (
    MATCH_FINALIZED,
    NotificationEvent,
    Notifier,
    dispatch_safely,
    events_for,
)

logger = logging.getLogger(__name__)


class ArchiveConflict(Exception):
    """The match changed between the read and the conditional delete."""


@dataclass
class SweepResult:
    finalized: List[HistoryEntry] = field(default_factory=list)
    skipped_count: int = 0
    failed_ids: List[str] = field(default_factory=list)

    @property
    def finalized_count(self) -> int:
        return len(self.finalized)


def history_entry_from_match(
    match: Match, state: HistoryState, reason: ArchiveReason, now: datetime
) -> HistoryEntry:
    """Denormalized snapshot of ``match`` (referee relationship must be loaded)."""
    year, month = int(match.date[0:4]), int(match.date[5:7])
    referee = match.referee
    return HistoryEntry(
        id=uuid4().hex,
        original_match_id=match.id,
        name=match.name,
        date=match.date,
        time=match.time,
        location=match.location,
        venue_id=match.venue_id,
        referee_id=match.referee_id,
        referee=referee,
        referee_name=referee.name if referee is not None else UNASSIGNED_REFEREE_NAME,
        state=state.value,
        reason=reason.value,
        archived_at=as_utc(now),
        match_month=month,
        match_year=year,
        rated=False,
    )


def recipients_of(match: Match) -> List[User]:
    """Assigned referee first, then applicants in application order."""
    users: List[User] = []
    if match.referee is not None:
        users.append(match.referee)
    users.extend(a.referee for a in match.applicants)
    return users


async def archive_if_finished(
    manager: DatabaseManager, match_id: str, now: datetime
) -> Optional[tuple[HistoryEntry, List[NotificationEvent]]]:
    """Archive one match in its own transaction. None if it is gone or not finished."""
    async with manager.session() as session:
        repo = MatchRepository(session)
        match = await repo.get_fresh(match_id)
        if match is None or not has_finished(match.starts_at, now):
            return None

        events = events_for(MATCH_FINALIZED, match, recipients_of(match))
        entry = history_entry_from_match(
            match, HistoryState.FINALIZED, ArchiveReason.AUTOMATIC, now
        )
        await HistoryRepository(session).add(entry)
        if not await repo.delete_if_version(match.id, match.version):
            raise ArchiveConflict(match.id)
    log_match_archived(match_id, entry.id, entry.state, entry.reason)
    return entry, events


async def run_sweep(
    notifier: Notifier,
    now: Optional[datetime] = None,
    manager: Optional[DatabaseManager] = None,
) -> SweepResult:
    """One sweep tick. Safe to call at any time and as often as wanted."""
    manager = manager or get_database_manager()
    now = now or utc_now()
    result = SweepResult()

    async with manager.session() as session:
        active = await MatchRepository(session).list_active()
        candidates = [(m.id, m.starts_at) for m in active]

    started = log_sweep_start(len(candidates))
    for match_id, starts_at in candidates:
        if not has_finished(starts_at, now):
            result.skipped_count += 1
            continue
        try:
            archived = await archive_if_finished(manager, match_id, now)
        except Exception:
            logger.exception("Failed to archive match %s; will retry next tick", match_id)
            result.failed_ids.append(match_id)
            continue
        if archived is None:
            result.skipped_count += 1
            continue
        entry, events = archived
        result.finalized.append(entry)
        await dispatch_safely(notifier, events)

    log_sweep_end(
        result.finalized_count,
        result.skipped_count,
        result.failed_ids,
        time.perf_counter() - started,
    )
    return result


async def sweep_forever(interval_seconds: float, notifier: Notifier) -> None:
    """Background loop: one tick per interval until cancelled."""
    logger.info("Archival sweep started (every %s seconds)", interval_seconds)
    while True:
        try:
            await run_sweep(notifier)
        except Exception:
            logger.exception("Archival sweep tick failed")
        await asyncio.sleep(interval_seconds)
