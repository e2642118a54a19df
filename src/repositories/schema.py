"""Schema creation for the match-engine tables."""

from __future__ import annotations

from sqlalchemy.engine import Engine

from models import Base, Match, MatchHistory, PlayerProfile, QueueEntry

ENGINE_TABLES = (
    PlayerProfile.__table__,
    QueueEntry.__table__,
    Match.__table__,
    MatchHistory.__table__,
)


def ensure_schema(engine: Engine) -> None:
    """Create engine tables and their indexes if they do not exist."""
    Base.metadata.create_all(bind=engine, tables=list(ENGINE_TABLES))
