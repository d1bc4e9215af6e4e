"""Tests for notification event building and post-commit dispatch."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_backend = Path(__file__).resolve().parent.parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

import pytest

from models.match import Match
from models.user import User
from ops.ops_events import OPS_LOGGER_NAME
from services.notifications import (
    MATCH_CANCELLED,
    REFEREE_UNASSIGNED,
    LoggingNotifier,
    dispatch_safely,
    events_for,
)


def _match() -> Match:
    return Match(id="m-1", name="Team A vs Team B", date="2030-05-10", time="15:00", location="Cancha 1")


def _users():
    return [
        User(id="ref-1", name="Referee 1", email="ref-1@example.com", role="referee"),
        User(id="ref-2", name="Referee 2", email="ref-2@example.com", role="referee"),
    ]


def test_events_for_one_event_per_recipient() -> None:
    events = events_for(REFEREE_UNASSIGNED, _match(), _users(), reason="Schedule conflict")
    assert [e.recipient.user_id for e in events] == ["ref-1", "ref-2"]
    assert events[0].kind == REFEREE_UNASSIGNED
    assert events[0].context == {
        "match_name": "Team A vs Team B",
        "date": "2030-05-10",
        "time": "15:00",
        "location": "Cancha 1",
        "reason": "Schedule conflict",
    }


@pytest.mark.asyncio
async def test_logging_notifier_emits_ops_events(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=OPS_LOGGER_NAME)
    await dispatch_safely(LoggingNotifier(), events_for(MATCH_CANCELLED, _match(), _users()))
    queued = [r for r in caplog.records if getattr(r, "ops_event_type", None) == "notification_queued"]
    assert [r.ops_event["recipient_id"] for r in queued] == ["ref-1", "ref-2"]


@pytest.mark.asyncio
async def test_dispatch_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    class BrokenNotifier:
        async def dispatch(self, events) -> None:
            raise ConnectionError("smtp down")

    caplog.set_level(logging.ERROR)
    await dispatch_safely(BrokenNotifier(), events_for(MATCH_CANCELLED, _match(), _users()))
    assert "Notification dispatch failed" in caplog.text
