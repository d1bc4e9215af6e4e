"""Repository layer for DB access only (CRUD + conditional writes).

Repositories operate on the models in backend/models/ and never commit:
transaction boundaries belong to the service layer. Writes that must not race
(applicant set, assignment, archival, rating flag) are single conditional
statements whose row count tells the caller whether it won.
"""

from .base import BaseRepository
from .history_repo import HistoryRepository
from .match_repo import MatchRepository
from .rating_repo import RatingRepository
from .user_repo import UserRepository
from .venue_repo import LocationRepository, VenueRepository

__all__ = [
    "BaseRepository",
    "HistoryRepository",
    "LocationRepository",
    "MatchRepository",
    "RatingRepository",
    "UserRepository",
    "VenueRepository",
]
