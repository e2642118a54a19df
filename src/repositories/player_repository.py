"""Persistence helpers for player rating records."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from domain.rating import DEFAULT_RATING_PARAMETERS, PlayerRating, RatingParameters
from models import PlayerProfile

OUTCOME_COUNTERS = {"win": "wins", "loss": "losses", "draw": "draws"}


def get_player(session: Session, player_id: int, *, for_update: bool = False) -> PlayerProfile | None:
    statement = select(PlayerProfile).where(PlayerProfile.id == player_id)
    if for_update:
        statement = statement.with_for_update()
    return session.execute(statement).scalar_one_or_none()


def get_players(session: Session, player_ids: Sequence[int], *, for_update: bool = False) -> dict[int, PlayerProfile]:
    statement = select(PlayerProfile).where(PlayerProfile.id.in_(list(player_ids))).order_by(PlayerProfile.id)
    if for_update:
        statement = statement.with_for_update()
    return {player.id: player for player in session.execute(statement).scalars().all()}


def create_player(
    session: Session,
    *,
    now: datetime,
    username: str | None = None,
    rating: int | None = None,
    rating_deviation: float | None = None,
    params: RatingParameters = DEFAULT_RATING_PARAMETERS,
) -> PlayerProfile:
    """New profile; rating and deviation default to the configured starting values."""
    initial_rating = params.initial_rating if rating is None else rating
    player = PlayerProfile(
        username=username,
        rating=initial_rating,
        peak_rating=initial_rating,
        rating_deviation=params.max_deviation if rating_deviation is None else rating_deviation,
        games_played=0,
        wins=0,
        losses=0,
        draws=0,
        created_at=now,
        updated_at=now,
    )
    session.add(player)
    session.flush()
    return player


def to_player_rating(player: PlayerProfile, *, rating: int | None = None) -> PlayerRating:
    """Domain view of a profile, optionally overriding the rating with a snapshot."""
    return PlayerRating(
        rating=player.rating if rating is None else rating,
        games_played=player.games_played,
        peak_rating=player.peak_rating,
        rating_deviation=player.rating_deviation,
    )


def apply_match_outcome(
    player: PlayerProfile,
    *,
    new_rating: int,
    outcome: str,
    played_at: datetime,
) -> None:
    """Write a completed match into the profile: rating, peak, counters, activity."""
    counter = OUTCOME_COUNTERS.get(outcome)
    if counter is None:
        raise ValueError(f"outcome={outcome!r} must be one of {sorted(OUTCOME_COUNTERS)}")

    player.rating = new_rating
    player.peak_rating = max(player.peak_rating, new_rating)
    player.games_played += 1
    setattr(player, counter, getattr(player, counter) + 1)
    player.last_played_at = played_at
    player.deviation_updated_at = played_at
    player.updated_at = played_at


def list_top_players(session: Session, *, limit: int, min_games: int = 0) -> list[PlayerProfile]:
    statement = (
        select(PlayerProfile)
        .where(PlayerProfile.games_played >= min_games)
        .order_by(PlayerProfile.rating.desc(), PlayerProfile.id)
        .limit(limit)
    )
    return list(session.execute(statement).scalars().all())


def list_players_inactive_since(session: Session, cutoff: datetime) -> list[PlayerProfile]:
    """Players who have played at least once but not since ``cutoff``."""
    statement = (
        select(PlayerProfile)
        .where(
            PlayerProfile.last_played_at.is_not(None),
            PlayerProfile.last_played_at < cutoff,
        )
        .order_by(PlayerProfile.id)
    )
    return list(session.execute(statement).scalars().all())
