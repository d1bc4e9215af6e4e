from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Venue(Base):
    """Sports ground owned by an organizer."""

    __tablename__ = "venues"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False, default="")


class Location(Base):
    """Named pitch or field inside a venue."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    venue_id: Mapped[str] = mapped_column(
        ForeignKey("venues.id"), nullable=False, index=True
    )
    organizer_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
