"""Tests for the postulation ledger: apply cap, assignment, substitution, unassignment."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from core.database import dispose_database, get_database_manager, init_database
from domain.errors import GuardError
from models.user import User
from repositories.match_repo import MatchRepository
from services.match_service import create_match
from services.postulation_service import (
    apply,
    assign,
    cancel_application,
    list_applicants,
    substitute,
    unassign,
)

T0 = datetime(2030, 5, 10, 12, 0, tzinfo=timezone.utc)
KICKOFF = T0 + timedelta(hours=3)
REASON = "Referee reported an injury"


async def _open_match(session):
    organizer = await session.get(User, "org-1")
    match = await create_match(
        session,
        organizer,
        name="Team A vs Team B",
        date="2030-05-10",
        time="15:00",
        location="Cancha 1",
        now=T0,
        tz_name="UTC",
    )
    return organizer, match


async def _apply_all(session, match_id, referee_ids):
    for i, rid in enumerate(referee_ids):
        referee = await session.get(User, rid)
        await apply(session, referee, match_id, now=T0 + timedelta(seconds=i))


@pytest.mark.asyncio
async def test_apply_adds_referee_in_order(test_db) -> None:
    async with get_database_manager().session() as session:
        _, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-2", "ref-1"])
        fresh = await MatchRepository(session).get_fresh(match.id)
        assert fresh.applicant_ids == ["ref-2", "ref-1"]
        assert fresh.version == 3
        assert [u.id for u in await list_applicants(session, match.id)] == ["ref-2", "ref-1"]


@pytest.mark.asyncio
async def test_apply_twice_is_rejected_without_duplicate(test_db) -> None:
    async with get_database_manager().session() as session:
        _, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1"])
        with pytest.raises(GuardError) as exc:
            await _apply_all(session, match.id, ["ref-1"])
        assert exc.value.code == "already_postulated"
        fresh = await MatchRepository(session).get_fresh(match.id)
        assert fresh.applicant_ids == ["ref-1"]


@pytest.mark.asyncio
async def test_apply_stops_at_cap(test_db) -> None:
    async with get_database_manager().session() as session:
        _, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1", "ref-2", "ref-3", "ref-4", "ref-5"])
        with pytest.raises(GuardError) as exc:
            await _apply_all(session, match.id, ["ref-6"])
        assert exc.value.code == "postulation_cap_reached"
        assert len((await MatchRepository(session).get_fresh(match.id)).applicants) == 5


@pytest.mark.asyncio
async def test_apply_rejected_after_start_or_assignment(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        ref3 = await session.get(User, "ref-3")

        with pytest.raises(GuardError) as exc:
            await apply(session, ref3, match.id, now=KICKOFF)
        assert exc.value.code == "match_already_started"

        await _apply_all(session, match.id, ["ref-1"])
        await assign(session, organizer, match.id, "ref-1", notifier, now=T0)
        with pytest.raises(GuardError) as exc:
            await apply(session, ref3, match.id, now=T0)
        assert exc.value.code == "referee_already_assigned"

        with pytest.raises(GuardError) as exc:
            await apply(session, organizer, match.id, now=T0)
        assert exc.value.code == "forbidden"


@pytest.mark.asyncio
async def test_cancel_application(test_db) -> None:
    async with get_database_manager().session() as session:
        _, match = await _open_match(session)
        ref1 = await session.get(User, "ref-1")
        await _apply_all(session, match.id, ["ref-1", "ref-2"])

        updated = await cancel_application(session, ref1, match.id, now=T0)
        assert updated.applicant_ids == ["ref-2"]

        with pytest.raises(GuardError) as exc:
            await cancel_application(session, ref1, match.id, now=T0)
        assert exc.value.code == "not_postulated"

        ref2 = await session.get(User, "ref-2")
        with pytest.raises(GuardError) as exc:
            await cancel_application(session, ref2, match.id, now=KICKOFF)
        assert exc.value.code == "match_already_started"
        fresh = await MatchRepository(session).get_fresh(match.id)
        assert fresh.applicant_ids == ["ref-2"]


@pytest.mark.asyncio
async def test_assign_moves_applicant_to_referee(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1", "ref-2"])

        updated = await assign(session, organizer, match.id, "ref-1", notifier, now=T0)

        assert updated.referee_id == "ref-1"
        assert updated.referee.name == "Referee 1"
        assert updated.applicant_ids == ["ref-2"]
    assert notifier.kinds() == [("referee_assigned", "ref-1")]


@pytest.mark.asyncio
async def test_assign_guards(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        other = await session.get(User, "org-2")
        await _apply_all(session, match.id, ["ref-1", "ref-2"])

        with pytest.raises(GuardError) as exc:
            await assign(session, organizer, match.id, "ref-7", notifier, now=T0)
        assert exc.value.code == "not_postulated"

        with pytest.raises(GuardError) as exc:
            await assign(session, other, match.id, "ref-1", notifier, now=T0)
        assert exc.value.code == "forbidden"

        with pytest.raises(GuardError) as exc:
            await assign(session, organizer, match.id, "ref-1", notifier, now=KICKOFF)
        assert exc.value.code == "match_already_started"

        await assign(session, organizer, match.id, "ref-1", notifier, now=T0)
        with pytest.raises(GuardError) as exc:
            await assign(session, organizer, match.id, "ref-2", notifier, now=T0)
        assert exc.value.code == "referee_already_assigned"

        with pytest.raises(GuardError) as exc:
            await assign(session, organizer, "missing", "ref-2", notifier, now=T0)
        assert exc.value.code == "not_found"


@pytest.mark.asyncio
async def test_substitute_swaps_referee_and_keeps_set_unique(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1", "ref-2", "ref-3"])
        await assign(session, organizer, match.id, "ref-1", notifier, now=T0)
        notifier.events.clear()

        updated = await substitute(session, organizer, match.id, "ref-2", REASON, notifier, now=T0)

        assert updated.referee_id == "ref-2"
        assert sorted(updated.applicant_ids) == ["ref-1", "ref-3"]
        assert "ref-2" not in updated.applicant_ids

    assert notifier.kinds() == [("referee_replaced", "ref-1"), ("referee_assigned", "ref-2")]
    assert notifier.events[0].context["reason"] == REASON
    assert notifier.events[0].context["new_referee_name"] == "Referee 2"


@pytest.mark.asyncio
async def test_substitute_guards(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1", "ref-2"])

        with pytest.raises(GuardError) as exc:
            await substitute(session, organizer, match.id, "ref-2", REASON, notifier, now=T0)
        assert exc.value.code == "no_referee_assigned"

        await assign(session, organizer, match.id, "ref-1", notifier, now=T0)
        with pytest.raises(GuardError) as exc:
            await substitute(session, organizer, match.id, "ref-5", REASON, notifier, now=T0)
        assert exc.value.code == "not_postulated"

        with pytest.raises(GuardError) as exc:
            await substitute(session, organizer, match.id, "ref-2", REASON, notifier, now=KICKOFF + timedelta(minutes=1))
        assert exc.value.code == "match_already_started"


@pytest.mark.asyncio
async def test_unassign_reopens_match(test_db, notifier) -> None:
    async with get_database_manager().session() as session:
        organizer, match = await _open_match(session)
        await _apply_all(session, match.id, ["ref-1", "ref-2"])
        await assign(session, organizer, match.id, "ref-1", notifier, now=T0)
        notifier.events.clear()

        with pytest.raises(GuardError) as exc:
            await unassign(session, organizer, match.id, REASON, notifier, now=KICKOFF)
        assert exc.value.code == "match_already_started"
        assert (await MatchRepository(session).get_fresh(match.id)).referee_id == "ref-1"

        updated = await unassign(session, organizer, match.id, REASON, notifier, now=T0)

        assert updated.referee_id is None
        assert sorted(updated.applicant_ids) == ["ref-1", "ref-2"]

        with pytest.raises(GuardError) as exc:
            await unassign(session, organizer, match.id, REASON, notifier, now=T0)
        assert exc.value.code == "no_referee_assigned"

        ref3 = await session.get(User, "ref-3")
        reopened = await apply(session, ref3, match.id, now=T0)
        assert len(reopened.applicants) == 3

    assert notifier.kinds() == [("referee_unassigned", "ref-1")]
    assert notifier.events[0].context["reason"] == REASON


@pytest.mark.asyncio
async def test_concurrent_applies_never_exceed_cap(tmp_path) -> None:
    """Eight referees applying at once to an empty match: exactly five get in."""
    from seeding import REFEREE_IDS, seed_people

    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}")
    try:
        manager = get_database_manager()
        await manager.create_schema()
        async with manager.session() as session:
            await seed_people(session)
        async with manager.session() as session:
            _, match = await _open_match(session)
            referees = [await session.get(User, rid) for rid in REFEREE_IDS]

        async def _one(referee):
            async with manager.session() as session:
                try:
                    await apply(session, referee, match.id, now=T0)
                except GuardError as e:
                    return e.code
                return "ok"

        outcomes = await asyncio.gather(*(_one(r) for r in referees))

        assert outcomes.count("ok") == 5
        assert set(outcomes) <= {"ok", "postulation_cap_reached"}
        async with manager.session() as session:
            fresh = await MatchRepository(session).get_fresh(match.id)
            assert len(fresh.applicants) == 5
            assert fresh.version == 6
    finally:
        await dispose_database()


@pytest.mark.asyncio
async def test_concurrent_assigns_only_one_wins(tmp_path, notifier) -> None:
    await init_database(f"sqlite+aiosqlite:///{tmp_path / 'assign.db'}")
    try:
        from seeding import seed_people

        manager = get_database_manager()
        await manager.create_schema()
        async with manager.session() as session:
            await seed_people(session)
        async with manager.session() as session:
            organizer, match = await _open_match(session)
            await _apply_all(session, match.id, ["ref-1", "ref-2"])

        async def _one(referee_id):
            async with manager.session() as session:
                try:
                    await assign(session, organizer, match.id, referee_id, notifier, now=T0)
                except GuardError as e:
                    return e.code
                return "ok"

        outcomes = await asyncio.gather(_one("ref-1"), _one("ref-2"))

        assert sorted(outcomes) == ["ok", "referee_already_assigned"]
        async with manager.session() as session:
            fresh = await MatchRepository(session).get_fresh(match.id)
            assert fresh.referee_id in ("ref-1", "ref-2")
            assert fresh.referee_id not in fresh.applicant_ids
            assert len(fresh.applicant_ids) == 1
    finally:
        await dispose_database()
