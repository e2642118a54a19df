"""players table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class PlayerProfile(Base):
    """Current rating state of one player. Mutated only when a match completes."""

    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("rating >= 0", name="ck_players_rating"),
        CheckConstraint(
            "rating_deviation >= 0.0",
            name="ck_players_rating_deviation",
        ),
        CheckConstraint("games_played >= 0", name="ck_players_games_played"),
        Index("idx_players_rating", "rating"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1500)
    peak_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=1500)
    rating_deviation: Mapped[float] = mapped_column(Float, nullable=False, default=350.0)
    games_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    draws: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_played_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    deviation_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
