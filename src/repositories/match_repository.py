"""Persistence helpers for matches and per-player match history."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Match, MatchHistory


def insert_match(session: Session, **fields: Any) -> Match:
    match = Match(**fields)
    session.add(match)
    session.flush()
    return match


def get_match(session: Session, match_id: int, *, for_update: bool = False) -> Match | None:
    statement = select(Match).where(Match.id == match_id)
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def insert_history_rows(session: Session, rows: Sequence[dict[str, Any]]) -> None:
    session.add_all([MatchHistory(**row) for row in rows])
    session.flush()


def list_history_for_player(session: Session, user_id: int, *, limit: int = 20) -> list[MatchHistory]:
    statement = (
        select(MatchHistory)
        .where(MatchHistory.user_id == user_id)
        .order_by(MatchHistory.played_at.desc(), MatchHistory.id.desc())
        .limit(limit)
    )
    return list(session.execute(statement).scalars().all())


def match_to_payload(match: Match) -> dict[str, Any]:
    """Row snapshot pushed to clients on every match update."""
    return {
        "id": match.id,
        "status": match.status,
        "paused_from": match.paused_from,
        "event_type": match.event_type,
        "player1_id": match.player1_id,
        "player2_id": match.player2_id,
        "player1_ready": match.player1_ready,
        "player2_ready": match.player2_ready,
        "player1_disconnected": match.player1_disconnected_at is not None,
        "player2_disconnected": match.player2_disconnected_at is not None,
        "player1_score": match.player1_score,
        "player2_score": match.player2_score,
        "player1_rating_before": match.player1_rating_before,
        "player2_rating_before": match.player2_rating_before,
        "player1_rating_after": match.player1_rating_after,
        "player2_rating_after": match.player2_rating_after,
        "player1_rating_change": match.player1_rating_change,
        "player2_rating_change": match.player2_rating_change,
        "winner_id": match.winner_id,
        "result": match.result,
        "game_data": match.game_data,
    }
