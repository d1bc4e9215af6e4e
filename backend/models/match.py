from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .match_applicant import MatchApplicant
from .user import User


class Match(Base):
    """Active (not yet archived) match.

    ``date``/``time`` keep the organizer-facing schedule in canonical form;
    ``starts_at`` is the UTC instant every lifecycle predicate is evaluated on.
    ``version`` is bumped by every mutation and guards compare-and-swap writes.
    """

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str] = mapped_column(String(300), nullable=False)

    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    venue_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("venues.id"), nullable=True, index=True
    )
    location_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("locations.id"), nullable=True
    )
    referee_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    referee: Mapped[Optional[User]] = relationship(
        User, foreign_keys=[referee_id], lazy="selectin"
    )
    applicants: Mapped[List[MatchApplicant]] = relationship(
        MatchApplicant,
        order_by=MatchApplicant.applied_at,
        lazy="selectin",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_match_creator_date", "creator_id", "date"),
        Index("ix_match_starts_at", "starts_at"),
    )

    @property
    def applicant_ids(self) -> List[str]:
        return [a.referee_id for a in self.applicants]
