"""matchmaking_queue table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class QueueEntry(Base):
    """A player waiting for an opponent. At most one row per player."""

    __tablename__ = "matchmaking_queue"
    __table_args__ = (
        Index("idx_matchmaking_queue_event_rating", "event_type", "rating"),
        Index("idx_matchmaking_queue_joined_at", "joined_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False, unique=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
