"""match_history table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class MatchHistory(Base):
    """Immutable per-player record of a completed match."""

    __tablename__ = "match_history"
    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_match_history_match_user"),
        CheckConstraint("result IN ('win', 'loss', 'draw')", name="ck_match_history_result"),
        Index("idx_match_history_user_played", "user_id", "played_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    match_id: Mapped[int] = mapped_column(ForeignKey("matches.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    opponent_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    millennium_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    wrong_count: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_before: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_after: Mapped[int] = mapped_column(Integer, nullable=False)
    rating_change: Mapped[int] = mapped_column(Integer, nullable=False)
    opponent_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    result: Mapped[str] = mapped_column(String(8), nullable=False)
    played_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
