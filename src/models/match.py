"""matches table model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType

MATCH_STATUSES = (
    "created",
    "waiting_for_players",
    "countdown",
    "memorization",
    "recall",
    "completed",
    "cancelled",
    "paused",
)

_STATUS_LIST = ", ".join(f"'{status}'" for status in MATCH_STATUSES)


class Match(Base):
    """One head-to-head match. The row is the source of truth for its phase and results."""

    __tablename__ = "matches"
    __table_args__ = (
        CheckConstraint("player1_id <> player2_id", name="ck_matches_distinct_players"),
        CheckConstraint(f"status IN ({_STATUS_LIST})", name="ck_matches_status"),
        CheckConstraint(
            "result IS NULL OR result IN ('player1', 'player2', 'draw')",
            name="ck_matches_result",
        ),
        Index("idx_matches_player1", "player1_id"),
        Index("idx_matches_player2", "player2_id"),
        Index("idx_matches_status", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player1_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    player2_id: Mapped[int] = mapped_column(ForeignKey("players.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="created")
    paused_from: Mapped[str | None] = mapped_column(String(32), nullable=True)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)

    player1_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    player2_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    player1_disconnected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    player2_disconnected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    player1_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player1_correct_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_correct_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player1_wrong_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_wrong_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    player1_rating_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_rating_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player1_rating_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_rating_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player1_rating_change: Mapped[int | None] = mapped_column(Integer, nullable=True)
    player2_rating_change: Mapped[int | None] = mapped_column(Integer, nullable=True)

    winner_id: Mapped[int | None] = mapped_column(ForeignKey("players.id"), nullable=True)
    result: Mapped[str | None] = mapped_column(String(16), nullable=True)

    game_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    state_history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    memorization_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    recall_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
