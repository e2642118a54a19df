"""Persistence helpers for the matchmaking queue."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from models import QueueEntry


def get_queue_entry(session: Session, user_id: int) -> QueueEntry | None:
    return session.execute(select(QueueEntry).where(QueueEntry.user_id == user_id)).scalar_one_or_none()


def insert_queue_entry(
    session: Session,
    *,
    user_id: int,
    rating: int,
    event_type: str,
    joined_at: datetime,
) -> QueueEntry:
    """Insert one entry; the unique user_id constraint rejects a second one on flush."""
    entry = QueueEntry(user_id=user_id, rating=rating, event_type=event_type, joined_at=joined_at)
    session.add(entry)
    session.flush()
    return entry


def delete_queue_entry(session: Session, user_id: int) -> int:
    result = session.execute(
        delete(QueueEntry)
        .where(QueueEntry.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


def claim_queue_entries(session: Session, user_ids: Sequence[int]) -> int:
    """Delete the given players' entries and report how many rows were actually removed.

    Used as a compare-and-swap: a caller that expected N entries and gets fewer
    lost a race with another matcher and must roll back.
    """
    result = session.execute(
        delete(QueueEntry)
        .where(QueueEntry.user_id.in_(list(user_ids)))
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


def find_candidates(
    session: Session,
    *,
    user_id: int,
    event_type: str,
    min_rating: int,
    max_rating: int,
    limit: int,
) -> list[QueueEntry]:
    """Same-event entries inside the rating window, longest-waiting first."""
    statement = (
        select(QueueEntry)
        .where(
            QueueEntry.event_type == event_type,
            QueueEntry.user_id != user_id,
            QueueEntry.rating >= min_rating,
            QueueEntry.rating <= max_rating,
        )
        .order_by(QueueEntry.joined_at, QueueEntry.id)
        .limit(limit)
    )
    return list(session.execute(statement).scalars().all())


def list_queue_entries(session: Session, event_type: str | None = None) -> list[QueueEntry]:
    statement = select(QueueEntry).order_by(QueueEntry.joined_at, QueueEntry.id)
    if event_type is not None:
        statement = statement.where(QueueEntry.event_type == event_type)
    return list(session.execute(statement).scalars().all())


def delete_stale_entries(session: Session, cutoff: datetime) -> int:
    """Remove entries that joined before ``cutoff``."""
    result = session.execute(
        delete(QueueEntry)
        .where(QueueEntry.joined_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)
