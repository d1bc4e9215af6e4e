"""Tests for the archival sweep: finished matches move to history exactly once."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from core.database import get_database_manager
from models.user import User
from ops.ops_events import OPS_LOGGER_NAME
from repositories.history_repo import HistoryRepository
from repositories.match_repo import MatchRepository
from services import archival_service
from services.archival_service import run_sweep
from services.match_service import create_match
from services.postulation_service import apply, assign

T0 = datetime(2030, 5, 10, 12, 0, tzinfo=timezone.utc)
KICKOFF = T0 + timedelta(hours=3)


async def _scheduled_match(notifier, name="Team A vs Team B", time="15:00", referees=("ref-1", "ref-2")):
    """Create a match with applicants; the first referee gets assigned."""
    async with get_database_manager().session() as session:
        organizer = await session.get(User, "org-1")
        match = await create_match(
            session,
            organizer,
            name=name,
            date="2030-05-10",
            time=time,
            location="Cancha 1",
            now=T0,
            tz_name="UTC",
        )
        for i, rid in enumerate(referees):
            await apply(session, await session.get(User, rid), match.id, now=T0 + timedelta(seconds=i))
        if referees:
            await assign(session, organizer, match.id, referees[0], notifier, now=T0)
    notifier.events.clear()
    return match.id


@pytest.mark.asyncio
async def test_sweep_leaves_match_within_grace_period(test_db, notifier) -> None:
    match_id = await _scheduled_match(notifier)

    result = await run_sweep(notifier, now=KICKOFF + timedelta(minutes=30))

    assert result.finalized_count == 0
    assert result.skipped_count == 1
    assert result.failed_ids == []
    async with get_database_manager().session() as session:
        assert await MatchRepository(session).get_fresh(match_id) is not None
        assert await HistoryRepository(session).get_by_original_match_id(match_id) is None
    assert notifier.events == []


@pytest.mark.asyncio
async def test_sweep_archives_finished_match(test_db, notifier) -> None:
    match_id = await _scheduled_match(notifier)
    now = KICKOFF + timedelta(minutes=61)

    result = await run_sweep(notifier, now=now)

    assert result.finalized_count == 1
    async with get_database_manager().session() as session:
        assert await MatchRepository(session).get_fresh(match_id) is None
        entry = await HistoryRepository(session).get_by_original_match_id(match_id)
        assert entry is not None
        assert entry.state == "Finalized"
        assert entry.reason == "automatic"
        assert entry.rated is False
        assert entry.name == "Team A vs Team B"
        assert entry.date == "2030-05-10"
        assert entry.time == "15:00"
        assert entry.location == "Cancha 1"
        assert entry.venue_id == "venue-1"
        assert entry.referee_id == "ref-1"
        assert entry.referee_name == "Referee 1"
        assert (entry.match_month, entry.match_year) == (5, 2030)

    assert notifier.kinds() == [("match_finalized", "ref-1"), ("match_finalized", "ref-2")]


@pytest.mark.asyncio
async def test_sweep_is_idempotent(test_db, notifier) -> None:
    match_id = await _scheduled_match(notifier)
    now = KICKOFF + timedelta(hours=2)

    first = await run_sweep(notifier, now=now)
    second = await run_sweep(notifier, now=now)

    assert first.finalized_count == 1
    assert second.finalized_count == 0
    assert second.skipped_count == 0
    async with get_database_manager().session() as session:
        entries = await HistoryRepository(session).list_for_venue_month("venue-1", 5, 2030)
        assert [e.original_match_id for e in entries] == [match_id]


@pytest.mark.asyncio
async def test_sweep_archives_unassigned_match_with_placeholder_name(test_db, notifier) -> None:
    match_id = await _scheduled_match(notifier, referees=())

    await run_sweep(notifier, now=KICKOFF + timedelta(hours=1))

    async with get_database_manager().session() as session:
        entry = await HistoryRepository(session).get_by_original_match_id(match_id)
        assert entry.referee_id is None
        assert entry.referee_name == "Unassigned"
    assert notifier.events == []


@pytest.mark.asyncio
async def test_sweep_isolates_failures(test_db, notifier, monkeypatch, caplog) -> None:
    """One match failing to archive does not stop the others; it is retried next tick."""
    caplog.set_level(logging.INFO, logger=OPS_LOGGER_NAME)
    bad_id = await _scheduled_match(notifier, name="Team A vs Team B")
    good_id = await _scheduled_match(notifier, name="Team C vs Team D", time="15:30", referees=("ref-3",))
    original = archival_service.history_entry_from_match

    def _failing(match, state, reason, now):
        if match.id == bad_id:
            raise RuntimeError("disk full")
        return original(match, state, reason, now)

    monkeypatch.setattr(archival_service, "history_entry_from_match", _failing)
    now = KICKOFF + timedelta(hours=3)
    result = await run_sweep(notifier, now=now)

    assert result.failed_ids == [bad_id]
    assert [e.original_match_id for e in result.finalized] == [good_id]
    assert "sweep_end" in caplog.text and bad_id in caplog.text
    async with get_database_manager().session() as session:
        assert await MatchRepository(session).get_fresh(bad_id) is not None
        assert await HistoryRepository(session).get_by_original_match_id(bad_id) is None

    monkeypatch.setattr(archival_service, "history_entry_from_match", original)
    retry = await run_sweep(notifier, now=now)
    assert [e.original_match_id for e in retry.finalized] == [bad_id]
