"""Enumerations shared by models, services and API payloads."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Caller role as supplied by the identity gateway."""

    ORGANIZER = "organizer"
    REFEREE = "referee"


class MatchStatus(str, Enum):
    """Active matches are always scheduled; archival removes the row."""

    SCHEDULED = "scheduled"


class HistoryState(str, Enum):
    """Terminal state of an archived match."""

    FINALIZED = "Finalized"
    CANCELLED = "Cancelled"


class ArchiveReason(str, Enum):
    """Why a match left the active collection."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


# Upper bound on match_applicants rows per match.
APPLICANT_CAP = 5

UNASSIGNED_REFEREE_NAME = "Unassigned"
