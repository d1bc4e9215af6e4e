"""Archived match: terminal outcome of a match, written once."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .user import User


class HistoryEntry(Base):
    """
    Immutable, denormalized copy of a match that left the active collection.

    state: Finalized (archival sweep) | Cancelled (organizer deletion)
    reason: automatic | manual
    The only later mutation is the one-time ``rated`` flip by the rating ledger,
    which also copies the stars/comment for reporting.
    """

    __tablename__ = "history_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Unique: a match is archived at most once.
    original_match_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    venue_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("venues.id"), nullable=True
    )
    referee_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    referee_name: Mapped[str] = mapped_column(String(200), nullable=False)

    state: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str] = mapped_column(String(20), nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    match_month: Mapped[int] = mapped_column(Integer, nullable=False)
    match_year: Mapped[int] = mapped_column(Integer, nullable=False)

    rated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rating_stars: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    referee: Mapped[Optional[User]] = relationship(User, lazy="selectin")

    __table_args__ = (
        Index("ix_history_venue_month_year", "venue_id", "match_month", "match_year"),
        Index("ix_history_archived_at", "archived_at"),
    )
