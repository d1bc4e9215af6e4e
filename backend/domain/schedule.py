"""
Temporal classifier for matches.

Organizers enter a date as DD/MM/YYYY or YYYY-MM-DD (told apart by the
separator) and a time as HH:MM, both in the service timezone. The strings are
parsed exactly once, at the write boundary, into a canonical ISO date and an
absolute UTC start instant; the started/finished predicates only ever see the
instant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from domain.errors import ScheduleFormatError

# A match is finished this long after its start.
GRACE_PERIOD = timedelta(minutes=60)

# Minimum notice between creation and kickoff.
LEAD_TIME = timedelta(hours=2)

_DMY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_HM = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class Schedule:
    """Canonical schedule of a match."""

    date: str  # ISO YYYY-MM-DD
    time: str  # HH:MM
    starts_at: datetime  # UTC, tz-aware

    @property
    def month(self) -> int:
        return int(self.date[5:7])

    @property
    def year(self) -> int:
        return int(self.date[0:4])


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to tz-aware UTC. Naive values (SQLite round trips) are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(raw: str) -> date:
    if not isinstance(raw, str):
        raise ScheduleFormatError(f"Unsupported date value: {raw!r}")
    raw = raw.strip()
    if "/" in raw:
        m = _DMY.match(raw)
        if m:
            day, month, year = (int(g) for g in m.groups())
            return _make_date(raw, year, month, day)
    elif "-" in raw:
        m = _YMD.match(raw)
        if m:
            year, month, day = (int(g) for g in m.groups())
            return _make_date(raw, year, month, day)
    raise ScheduleFormatError(f"Unsupported date format: {raw!r}")


def _make_date(raw: str, year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ScheduleFormatError(f"Invalid calendar date: {raw!r}") from e


def parse_time(raw: str) -> time:
    m = _HM.match(raw.strip()) if isinstance(raw, str) else None
    if not m:
        raise ScheduleFormatError(f"Unsupported time format: {raw!r}")
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise ScheduleFormatError(f"Invalid time of day: {raw!r}")
    return time(hour, minute)


def parse_schedule(raw_date: str, raw_time: str, tz_name: str) -> Schedule:
    """Parse organizer input into a canonical Schedule; raises ScheduleFormatError."""
    try:
        tz = ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as e:
        raise ScheduleFormatError(f"Unknown timezone: {tz_name!r}") from e
    d = parse_date(raw_date)
    t = parse_time(raw_time)
    local = datetime.combine(d, t, tzinfo=tz)
    return Schedule(
        date=d.isoformat(),
        time=t.strftime("%H:%M"),
        starts_at=local.astimezone(timezone.utc),
    )


def has_started(starts_at: datetime, now: datetime) -> bool:
    return as_utc(now) >= as_utc(starts_at)


def finishes_at(starts_at: datetime) -> datetime:
    return as_utc(starts_at) + GRACE_PERIOD


def has_finished(starts_at: datetime, now: datetime) -> bool:
    return as_utc(now) >= finishes_at(starts_at)
