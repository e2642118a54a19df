"""Match lifecycle orchestration: phases, answers, completion and disconnects."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import Any, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from domain.common import Clock, to_epoch_millis, utc_now
from domain.config import EngineConfig, default_engine_config
from domain.errors import (
    AnswerSubmissionError,
    InvalidTransitionError,
    MatchNotFoundError,
    MatchParticipantError,
    PlayerNotFoundError,
)
from domain.match.countdown import GameStartMessage, build_game_start_message
from domain.match.game_data import build_game_data, grid_for_parameters
from domain.match.state_machine import (
    DisconnectAction,
    DisconnectionPolicy,
    MatchState,
    MatchStateMachine,
    allowed_transitions,
    disconnection_policy,
)
from domain.notifier import MatchNotifier, NullNotifier
from domain.rating import MatchResult, determine_match_result, rating_deviation, update_player_ratings
from domain.scoring import ScoringResult, calculate_millennium_score, score_number_event
from models import Match, MatchHistory
from repositories.match_repository import (
    get_match,
    insert_history_rows,
    list_history_for_player,
    match_to_payload,
)
from repositories.player_repository import (
    apply_match_outcome,
    get_players,
    list_players_inactive_since,
    to_player_rating,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HISTORY_RESULTS = {
    MatchResult.PLAYER1: ("win", "loss"),
    MatchResult.PLAYER2: ("loss", "win"),
    MatchResult.DRAW: ("draw", "draw"),
}


def _player_slot(match: Match, user_id: int) -> int:
    if user_id == match.player1_id:
        return 1
    if user_id == match.player2_id:
        return 2
    raise MatchParticipantError(match.id, user_id)


class MatchService:
    """Drives one match row through its phases.

    Every operation runs in its own transaction with the match row locked, so
    concurrent callers serialise on the row and each transition happens once.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        config: EngineConfig | None = None,
        notifier: MatchNotifier | None = None,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or default_engine_config()
        self._notifier: MatchNotifier = notifier or NullNotifier()
        self._clock = clock
        self._rng = rng or random.Random()

    def _run(self, match_id: int, action: Callable[[Session, Match], T]) -> T:
        with self._session_factory() as session:
            try:
                match = get_match(session, match_id, for_update=True)
                if match is None:
                    raise MatchNotFoundError(match_id)
                outcome = action(session, match)
                session.commit()
            except Exception:
                session.rollback()
                raise
        self._notifier.match_updated(match.id, match_to_payload(match))
        return outcome

    def _machine(self, match: Match) -> MatchStateMachine:
        history = match.state_history or []
        if history and history[-1].get("state") == match.status:
            return MatchStateMachine.from_history(history, clock=self._clock)
        return MatchStateMachine(match.status, clock=self._clock)

    def _transition(self, match: Match, target: MatchState, metadata: Any = None) -> MatchState:
        machine = self._machine(match)
        previous = machine.state
        machine.require(target, metadata)
        match.status = machine.state.value
        match.state_history = machine.history_json()
        logger.info("match_id=%s %s -> %s", match.id, previous.value, target.value)
        return previous

    def get_match(self, match_id: int) -> Match:
        with self._session_factory() as session:
            match = get_match(session, match_id)
        if match is None:
            raise MatchNotFoundError(match_id)
        return match

    def mark_ready(self, match_id: int, user_id: int) -> GameStartMessage | None:
        """Flag a participant as ready; the second ready player starts the countdown."""

        def action(session: Session, match: Match) -> GameStartMessage | None:
            if _player_slot(match, user_id) == 1:
                match.player1_ready = True
            else:
                match.player2_ready = True
            if match.player1_ready and match.player2_ready and match.status == MatchState.WAITING_FOR_PLAYERS.value:
                return self._enter_countdown(match)
            return None

        return self._run(match_id, action)

    def start_countdown(self, match_id: int) -> GameStartMessage:
        """Enter COUNTDOWN, deal the digit grid and fix the shared start instant."""
        return self._run(match_id, lambda session, match: self._enter_countdown(match))

    def _enter_countdown(self, match: Match) -> GameStartMessage:
        self._transition(match, MatchState.COUNTDOWN)
        now = self._clock()
        timings = self._config.timings_for(match.event_type)
        message = build_game_start_message(timings.countdown_duration, now_ms=to_epoch_millis(now))

        game_data = dict(match.game_data or {})
        grid = game_data.get("numbersGrid") or grid_for_parameters(self._config.scoring, self._rng)
        game_data.update(build_game_data(grid, game_start_time=message.game_start_time, timings=timings))
        match.game_data = game_data
        if match.started_at is None:
            match.started_at = now
        return message

    def _advance_phase(self, match: Match, source: MatchState, target: MatchState) -> None:
        # A paused match only resumes through handle_reconnect.
        if match.status != source.value:
            current = MatchState(match.status)
            logger.warning(
                "phase change rejected match_id=%s status=%s target=%s",
                match.id,
                current.value,
                target.value,
            )
            raise InvalidTransitionError(current, target, allowed_transitions(current) - {target})
        self._transition(match, target)

    def begin_memorization(self, match_id: int) -> Match:
        def action(session: Session, match: Match) -> Match:
            self._advance_phase(match, MatchState.COUNTDOWN, MatchState.MEMORIZATION)
            match.memorization_started_at = self._clock()
            return match

        return self._run(match_id, action)

    def begin_recall(self, match_id: int) -> Match:
        def action(session: Session, match: Match) -> Match:
            self._advance_phase(match, MatchState.MEMORIZATION, MatchState.RECALL)
            match.recall_started_at = self._clock()
            return match

        return self._run(match_id, action)

    def submit_answers(
        self,
        match_id: int,
        user_id: int,
        recalled: Sequence[Sequence[Sequence[str | None]]],
    ) -> ScoringResult:
        """Score one player's recall sheet; the second submission completes the match."""

        def action(session: Session, match: Match) -> ScoringResult:
            slot = _player_slot(match, user_id)
            if match.status != MatchState.RECALL.value:
                raise AnswerSubmissionError(
                    f"match_id={match.id} is in status={match.status}; answers are accepted during recall"
                )
            if getattr(match, f"player{slot}_score") is not None:
                raise AnswerSubmissionError(f"user_id={user_id} already submitted for match_id={match.id}")

            actual = (match.game_data or {}).get("numbersGrid") or []
            result = score_number_event(
                recalled,
                actual,
                self._config.scoring.digits_per_row,
                variant=self._config.scoring.variant,
            )
            setattr(match, f"player{slot}_score", result.total_score)
            setattr(match, f"player{slot}_correct_count", result.correct_count)
            setattr(match, f"player{slot}_wrong_count", result.wrong_count)
            logger.info(
                "answers scored match_id=%s user_id=%s score=%s correct=%s wrong=%s",
                match.id,
                user_id,
                result.total_score,
                result.correct_count,
                result.wrong_count,
            )

            if match.player1_score is not None and match.player2_score is not None:
                self._complete(session, match)
            return result

        return self._run(match_id, action)

    def complete_match(self, match_id: int) -> Match:
        """Finish a match in RECALL; a player who never submitted scores 0."""

        def action(session: Session, match: Match) -> Match:
            self._complete(session, match)
            return match

        return self._run(match_id, action)

    def _complete(self, session: Session, match: Match, result: MatchResult | None = None) -> None:
        self._transition(match, MatchState.COMPLETED)
        now = self._clock()

        for slot in (1, 2):
            for field in ("score", "correct_count", "wrong_count"):
                name = f"player{slot}_{field}"
                if getattr(match, name) is None:
                    setattr(match, name, 0)

        outcome = result or determine_match_result(match.player1_score, match.player2_score)

        players = get_players(session, [match.player1_id, match.player2_id], for_update=True)
        for player_id in (match.player1_id, match.player2_id):
            if player_id not in players:
                raise PlayerNotFoundError(player_id)
        player1 = players[match.player1_id]
        player2 = players[match.player2_id]

        player1_before = player1.rating if match.player1_rating_before is None else match.player1_rating_before
        player2_before = player2.rating if match.player2_rating_before is None else match.player2_rating_before
        update = update_player_ratings(
            to_player_rating(player1, rating=player1_before),
            to_player_rating(player2, rating=player2_before),
            outcome,
            self._config.rating,
        )

        match.player1_rating_before = player1_before
        match.player2_rating_before = player2_before
        match.player1_rating_after = update.player1.new_rating
        match.player2_rating_after = update.player2.new_rating
        match.player1_rating_change = update.player1.rating_change
        match.player2_rating_change = update.player2.rating_change
        match.result = outcome.value
        match.winner_id = {
            MatchResult.PLAYER1: match.player1_id,
            MatchResult.PLAYER2: match.player2_id,
        }.get(outcome)
        match.completed_at = now

        player1_result, player2_result = _HISTORY_RESULTS[outcome]
        standard = self._config.scoring.millennium_standard
        apply_match_outcome(player1, new_rating=update.player1.new_rating, outcome=player1_result, played_at=now)
        apply_match_outcome(player2, new_rating=update.player2.new_rating, outcome=player2_result, played_at=now)

        insert_history_rows(
            session,
            [
                {
                    "match_id": match.id,
                    "user_id": match.player1_id,
                    "opponent_id": match.player2_id,
                    "event_type": match.event_type,
                    "score": match.player1_score,
                    "millennium_score": calculate_millennium_score(match.player1_score, standard),
                    "correct_count": match.player1_correct_count,
                    "wrong_count": match.player1_wrong_count,
                    "rating_before": player1_before,
                    "rating_after": update.player1.new_rating,
                    "rating_change": update.player1.rating_change,
                    "opponent_rating": player2_before,
                    "result": player1_result,
                    "played_at": now,
                },
                {
                    "match_id": match.id,
                    "user_id": match.player2_id,
                    "opponent_id": match.player1_id,
                    "event_type": match.event_type,
                    "score": match.player2_score,
                    "millennium_score": calculate_millennium_score(match.player2_score, standard),
                    "correct_count": match.player2_correct_count,
                    "wrong_count": match.player2_wrong_count,
                    "rating_before": player2_before,
                    "rating_after": update.player2.new_rating,
                    "rating_change": update.player2.rating_change,
                    "opponent_rating": player1_before,
                    "result": player2_result,
                    "played_at": now,
                },
            ],
        )
        logger.info(
            "match completed match_id=%s result=%s player1=%s(%+d) player2=%s(%+d)",
            match.id,
            outcome.value,
            update.player1.new_rating,
            update.player1.rating_change,
            update.player2.new_rating,
            update.player2.rating_change,
        )

    def cancel_match(self, match_id: int) -> Match:
        def action(session: Session, match: Match) -> Match:
            self._transition(match, MatchState.CANCELLED)
            match.paused_from = None
            return match

        return self._run(match_id, action)

    def handle_disconnect(self, match_id: int, user_id: int) -> DisconnectionPolicy:
        """Record the disconnect, apply the immediate part of the current policy and return it.

        PAUSE freezes the match right away. FORFEIT and WAIT only start the
        grace period; ``resolve_disconnect_timeout`` settles them if the player
        has not come back once it has run out.
        """

        def action(session: Session, match: Match) -> DisconnectionPolicy:
            slot = _player_slot(match, user_id)
            policy = disconnection_policy(match.status)
            logger.info(
                "player disconnected match_id=%s user_id=%s status=%s action=%s grace_ms=%s",
                match.id,
                user_id,
                match.status,
                policy.action.value,
                policy.grace_period_ms,
            )
            if not policy.allow_reconnect:
                return policy

            column = f"player{slot}_disconnected_at"
            # Repeated disconnect events keep the first timestamp.
            if getattr(match, column) is None:
                setattr(match, column, self._clock())
            if policy.action is DisconnectAction.PAUSE:
                paused_from = match.status
                self._transition(match, MatchState.PAUSED, {"user_id": user_id})
                match.paused_from = paused_from
            return policy

        return self._run(match_id, action)

    def handle_reconnect(self, match_id: int, user_id: int) -> GameStartMessage | None:
        """Clear a player's disconnect and resume a paused match once both players are back.

        Resuming into COUNTDOWN returns a fresh GAME_START. Reconnecting during
        RECALL keeps the match going; the recall clock is never stopped.
        """

        def action(session: Session, match: Match) -> GameStartMessage | None:
            slot = _player_slot(match, user_id)
            if not disconnection_policy(match.status).allow_reconnect:
                logger.debug("reconnect ignored match_id=%s status=%s", match.id, match.status)
                return None

            setattr(match, f"player{slot}_disconnected_at", None)
            if match.status != MatchState.PAUSED.value or match.paused_from is None:
                return None
            opponent_slot = 2 if slot == 1 else 1
            if getattr(match, f"player{opponent_slot}_disconnected_at") is not None:
                logger.info("match_id=%s stays paused; opponent still disconnected", match.id)
                return None

            target = MatchState(match.paused_from)
            match.paused_from = None
            if target is MatchState.COUNTDOWN:
                return self._enter_countdown(match)
            self._transition(match, target, {"user_id": user_id})
            return None

        return self._run(match_id, action)

    def resolve_disconnect_timeout(self, match_id: int, user_id: int) -> Match:
        """Settle a disconnect whose grace period ran out.

        The match is returned unchanged unless the player is still
        disconnected and the current state's grace period has elapsed since
        the disconnect. Then FORFEIT completes the match with the opponent as
        winner, while PAUSE and WAIT cancel it. Terminal matches are left alone.
        """

        def action(session: Session, match: Match) -> Match:
            slot = _player_slot(match, user_id)
            policy = disconnection_policy(match.status)
            if policy.action is DisconnectAction.NONE:
                return match

            disconnected_at = getattr(match, f"player{slot}_disconnected_at")
            if disconnected_at is None:
                logger.debug("no pending disconnect match_id=%s user_id=%s", match.id, user_id)
                return match
            elapsed_ms = (self._clock() - disconnected_at) / timedelta(milliseconds=1)
            if elapsed_ms < policy.grace_period_ms:
                logger.debug(
                    "grace period running match_id=%s user_id=%s elapsed_ms=%s grace_ms=%s",
                    match.id,
                    user_id,
                    int(elapsed_ms),
                    policy.grace_period_ms,
                )
                return match

            if policy.action is DisconnectAction.FORFEIT:
                logger.info("forfeit match_id=%s user_id=%s", match.id, user_id)
                self._complete(session, match, MatchResult.PLAYER2 if slot == 1 else MatchResult.PLAYER1)
                return match
            self._transition(match, MatchState.CANCELLED, {"user_id": user_id, "reason": "disconnect"})
            match.paused_from = None
            return match

        return self._run(match_id, action)

    def history_for_player(self, user_id: int, *, limit: int = 20) -> list[MatchHistory]:
        if limit <= 0:
            raise ValueError("limit must be greater than 0")
        with self._session_factory() as session:
            return list_history_for_player(session, user_id, limit=limit)

    def age_inactive_players(self, period_days: int) -> int:
        """Inflate the deviation of players idle for whole rating periods; returns players touched.

        Each player's aging anchor moves forward by the periods applied, so
        repeated runs never count the same idle time twice.
        """
        if period_days <= 0:
            raise ValueError("period_days must be greater than 0")

        period = timedelta(days=period_days)
        now = self._clock()
        params = self._config.rating
        aged = 0
        with self._session_factory() as session:
            try:
                for player in list_players_inactive_since(session, now - period):
                    anchor = player.deviation_updated_at or player.last_played_at
                    if anchor is None:
                        continue
                    periods = int((now - anchor) // period)
                    if periods <= 0:
                        continue
                    player.rating_deviation = rating_deviation(
                        player.rating_deviation,
                        periods,
                        params.deviation_constant,
                        params.max_deviation,
                    )
                    player.deviation_updated_at = anchor + period * periods
                    player.updated_at = now
                    aged += 1
                session.commit()
            except Exception:
                session.rollback()
                raise
        if aged:
            logger.info("aged rating deviation players=%s period_days=%s", aged, period_days)
        return aged


__all__ = ["MatchService"]
