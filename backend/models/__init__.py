"""SQLAlchemy models for the match lifecycle and referee assignment engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .base import Base
from .user import User
from .venue import Location, Venue
from .match_applicant import MatchApplicant
from .match import Match
from .history_entry import HistoryEntry
from .rating import Rating

__all__ = [
    "Base",
    "HistoryEntry",
    "Location",
    "Match",
    "MatchApplicant",
    "Rating",
    "User",
    "Venue",
]
