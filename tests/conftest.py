"""Shared fixtures: in-memory database and a controllable clock."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta
from typing import Any

import pytest
from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory
from repositories import ensure_schema
from repositories.player_repository import create_player


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RecordingNotifier:
    def __init__(self) -> None:
        self.updates: list[tuple[int, dict[str, Any]]] = []

    def match_updated(self, match_id: int, payload: dict[str, Any]) -> None:
        self.updates.append((match_id, payload))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    engine = create_db_engine("sqlite://")
    ensure_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def make_player(session_factory: sessionmaker[Session], clock: FakeClock) -> Callable[..., int]:
    def _make(rating: int = 1500, *, games_played: int = 0, rating_deviation: float = 350.0) -> int:
        with session_factory() as session:
            player = create_player(session, now=clock(), rating=rating, rating_deviation=rating_deviation)
            player.games_played = games_played
            session.commit()
            return player.id

    return _make
