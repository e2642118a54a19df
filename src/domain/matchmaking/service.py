"""Queue membership and match formation on top of the persistent store."""

from __future__ import annotations

import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from domain.common import Clock, utc_now
from domain.config import EngineConfig, default_engine_config
from domain.errors import PlayerNotFoundError
from domain.events import resolve_event_type
from domain.match.state_machine import MatchState, MatchStateMachine
from domain.matchmaking.search import QueuedPlayer, rating_window, select_best_opponent, wait_seconds
from domain.notifier import MatchNotifier, NullNotifier
from models import Match, QueueEntry
from repositories.match_repository import insert_match, match_to_payload
from repositories.player_repository import create_player, get_players
from repositories.queue_repository import (
    claim_queue_entries,
    delete_queue_entry,
    delete_stale_entries,
    find_candidates,
    get_queue_entry,
    insert_queue_entry,
    list_queue_entries,
)

logger = logging.getLogger(__name__)

DEFAULT_FORMATION_ATTEMPTS = 3


def _to_queued_player(entry: QueueEntry) -> QueuedPlayer:
    return QueuedPlayer(
        user_id=entry.user_id,
        rating=entry.rating,
        event_type=entry.event_type,
        joined_at=entry.joined_at,
    )


class MatchmakingService:
    """Rating-window matchmaking.

    Search is read-only and safe to repeat. Formation deletes both queue
    entries in the same transaction that inserts the match; if the delete does
    not remove exactly two rows another matcher got there first and nothing is
    written.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        config: EngineConfig | None = None,
        notifier: MatchNotifier | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or default_engine_config()
        self._notifier: MatchNotifier = notifier or NullNotifier()
        self._clock = clock

    @property
    def config(self) -> EngineConfig:
        return self._config

    def _event_type(self, event_type: str | None) -> str:
        return resolve_event_type(event_type, self._config.event_timings)

    def register_player(self, username: str | None = None) -> int:
        """Create a profile at the configured starting rating and deviation; returns its id."""
        with self._session_factory() as session:
            try:
                player = create_player(session, now=self._clock(), username=username, params=self._config.rating)
                player_id = player.id
                session.commit()
            except Exception:
                session.rollback()
                raise
        logger.info("player registered player_id=%s rating=%s", player_id, self._config.rating.initial_rating)
        return player_id

    def join_queue(self, user_id: int, rating: int, event_type: str | None = None) -> QueuedPlayer | None:
        """Add a player to the queue; returns None when the player is already queued."""
        resolved_event = self._event_type(event_type)
        with self._session_factory() as session:
            try:
                if get_queue_entry(session, user_id) is not None:
                    logger.warning("user_id=%s already in queue; join ignored", user_id)
                    return None
                entry = insert_queue_entry(
                    session,
                    user_id=user_id,
                    rating=rating,
                    event_type=resolved_event,
                    joined_at=self._clock(),
                )
                queued = _to_queued_player(entry)
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                logger.warning("user_id=%s join rejected by constraint: %s", user_id, exc.orig)
                return None
            except Exception:
                session.rollback()
                raise

        logger.info("user_id=%s joined queue rating=%s event_type=%s", user_id, rating, resolved_event)
        return queued

    def leave_queue(self, user_id: int) -> bool:
        """Remove a player's entry. Leaving twice is harmless; returns whether a row was removed."""
        with self._session_factory() as session:
            try:
                removed = delete_queue_entry(session, user_id)
                session.commit()
            except Exception:
                session.rollback()
                raise
        if removed:
            logger.info("user_id=%s left queue", user_id)
        return removed > 0

    def find_match(self, user_id: int, rating: int, event_type: str | None = None) -> QueuedPlayer | None:
        """Best opponent inside the requester's current rating window, if any."""
        resolved_event = self._event_type(event_type)
        params = self._config.matchmaking
        with self._session_factory() as session:
            entry = get_queue_entry(session, user_id)
            if entry is None:
                return None

            now = self._clock()
            min_rating, max_rating = rating_window(rating, wait_seconds(entry.joined_at, now), params)
            candidates = [
                _to_queued_player(row)
                for row in find_candidates(
                    session,
                    user_id=user_id,
                    event_type=resolved_event,
                    min_rating=min_rating,
                    max_rating=max_rating,
                    limit=params.candidate_limit,
                )
            ]

        best = select_best_opponent(candidates, rating, now, params)
        logger.debug(
            "search user_id=%s window=[%s, %s] candidates=%s best=%s",
            user_id,
            min_rating,
            max_rating,
            len(candidates),
            None if best is None else best.user_id,
        )
        return best

    def create_match(
        self,
        player1_id: int,
        player2_id: int,
        event_type: str | None = None,
        *,
        require_queued: bool = True,
    ) -> Match | None:
        """Form a match and take both players out of the queue atomically.

        With ``require_queued`` (the matchmaking path) a lost race returns None
        and leaves the store untouched. Without it, queue removal is best effort
        so that direct challenges can pair players who never queued.
        """
        if player1_id == player2_id:
            raise ValueError("player1_id and player2_id must differ")

        resolved_event = self._event_type(event_type)
        with self._session_factory() as session:
            try:
                players = get_players(session, [player1_id, player2_id])
                for player_id in (player1_id, player2_id):
                    if player_id not in players:
                        raise PlayerNotFoundError(player_id)

                claimed = claim_queue_entries(session, [player1_id, player2_id])
                if require_queued and claimed != 2:
                    session.rollback()
                    logger.warning(
                        "match not formed, retry search player1_id=%s player2_id=%s claimed=%s",
                        player1_id,
                        player2_id,
                        claimed,
                    )
                    return None

                now = self._clock()
                machine = MatchStateMachine(clock=lambda: now)
                machine.require(MatchState.WAITING_FOR_PLAYERS)
                match = insert_match(
                    session,
                    player1_id=player1_id,
                    player2_id=player2_id,
                    status=machine.state.value,
                    state_history=machine.history_json(),
                    event_type=resolved_event,
                    player1_ready=False,
                    player2_ready=False,
                    player1_rating_before=players[player1_id].rating,
                    player2_rating_before=players[player2_id].rating,
                    created_at=now,
                )
                session.commit()
            except Exception:
                session.rollback()
                raise

        logger.info(
            "match formed match_id=%s player1_id=%s player2_id=%s event_type=%s",
            match.id,
            player1_id,
            player2_id,
            resolved_event,
        )
        self._notifier.match_updated(match.id, match_to_payload(match))
        return match

    def poll(self, user_id: int, rating: int, event_type: str | None = None) -> Match | None:
        """One polling cycle: search, then try to form a match with the best candidate."""
        opponent = self.find_match(user_id, rating, event_type)
        if opponent is None:
            return None
        return self.create_match(user_id, opponent.user_id, opponent.event_type)

    def match_on_join(
        self,
        user_id: int,
        rating: int,
        event_type: str | None = None,
        *,
        attempts: int = DEFAULT_FORMATION_ATTEMPTS,
    ) -> Match | None:
        """Join and immediately try to pair, re-searching after a lost formation race."""
        if attempts <= 0:
            raise ValueError("attempts must be greater than 0")
        self.join_queue(user_id, rating, event_type)
        for _ in range(attempts):
            opponent = self.find_match(user_id, rating, event_type)
            if opponent is None:
                return None
            match = self.create_match(user_id, opponent.user_id, opponent.event_type)
            if match is not None:
                return match
        return None

    def clean_stale_entries(self) -> int:
        """Drop entries older than the stale threshold; returns how many were removed."""
        cutoff = self._clock() - timedelta(seconds=self._config.matchmaking.stale_after_seconds)
        with self._session_factory() as session:
            try:
                removed = delete_stale_entries(session, cutoff)
                session.commit()
            except Exception:
                session.rollback()
                raise
        if removed:
            logger.info("removed stale queue entries count=%s cutoff=%s", removed, cutoff.isoformat())
        return removed

    def get_queued_players(self, event_type: str | None = None) -> list[QueuedPlayer]:
        resolved_event = None if event_type is None else self._event_type(event_type)
        with self._session_factory() as session:
            return [_to_queued_player(entry) for entry in list_queue_entries(session, resolved_event)]


__all__ = ["DEFAULT_FORMATION_ATTEMPTS", "MatchmakingService"]
