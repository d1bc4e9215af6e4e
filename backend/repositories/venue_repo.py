from __future__ import annotations

from models.venue import Location, Venue
from .base import BaseRepository


class VenueRepository(BaseRepository[Venue]):
    model = Venue


class LocationRepository(BaseRepository[Location]):
    """Repository for named pitches inside a venue."""

    model = Location
