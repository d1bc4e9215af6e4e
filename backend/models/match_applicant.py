from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .user import User


class MatchApplicant(Base):
    """One referee postulated to one match; the composite key makes it a set."""

    __tablename__ = "match_applicants"

    match_id: Mapped[str] = mapped_column(
        ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True
    )
    referee_id: Mapped[str] = mapped_column(ForeignKey("users.id"), primary_key=True)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    referee: Mapped[User] = relationship(User, lazy="selectin")
