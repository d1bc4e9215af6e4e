from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .user import User


class Rating(Base):
    """Organizer's score for the referee of one finalized history entry."""

    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referee_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    organizer_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    history_entry_id: Mapped[str] = mapped_column(
        ForeignKey("history_entries.id"), nullable=False
    )
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    organizer: Mapped[User] = relationship(User, foreign_keys=[organizer_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint("referee_id", "history_entry_id", name="uq_rating_referee_entry"),
        CheckConstraint("stars BETWEEN 1 AND 5", name="ck_rating_stars"),
    )
