"""Tests for match lifecycle orchestration against SQLite."""

from __future__ import annotations

import random

import pytest

from domain.config import EngineConfig
from domain.errors import (
    AnswerSubmissionError,
    InvalidTransitionError,
    MatchNotFoundError,
    MatchParticipantError,
)
from domain.match.service import MatchService
from domain.match.state_machine import DisconnectAction
from domain.matchmaking.service import MatchmakingService
from domain.scoring import ScoringParameters
from repositories.player_repository import get_player


def _recall_rows(grid: list[list[list[int]]], rows: int) -> list[list[list[str]]]:
    """Recall sheet with the first ``rows`` rows of page one copied correctly."""
    sheet = [[[""] * len(row) for row in page] for page in grid]
    for row_index in range(rows):
        sheet[0][row_index] = [str(digit) for digit in grid[0][row_index]]
    return sheet


@pytest.fixture
def services(session_factory, clock, notifier):
    matchmaking = MatchmakingService(session_factory, clock=clock, notifier=notifier)
    matches = MatchService(session_factory, clock=clock, notifier=notifier, rng=random.Random(7))
    return matchmaking, matches


@pytest.fixture
def match_id(services, make_player) -> int:
    matchmaking, _ = services
    match = matchmaking.create_match(make_player(), make_player(), "speed", require_queued=False)
    return match.id


def _advance_to_recall(matches: MatchService, match_id: int) -> list[list[list[int]]]:
    matches.start_countdown(match_id)
    matches.begin_memorization(match_id)
    matches.begin_recall(match_id)
    return matches.get_match(match_id).game_data["numbersGrid"]


def test_both_players_ready_starts_countdown_with_grid(services, match_id, clock) -> None:
    _, matches = services
    match = matches.get_match(match_id)

    assert matches.mark_ready(match_id, match.player1_id) is None
    message = matches.mark_ready(match_id, match.player2_id)

    assert message is not None
    assert message.countdown_duration == 5
    assert message.game_start_time == message.server_time + 5_000
    stored = matches.get_match(match_id)
    assert stored.status == "countdown"
    assert stored.started_at == clock()
    assert stored.game_data["gameStartTime"] == message.game_start_time
    assert stored.game_data["memorizationDuration"] == 300
    grid = stored.game_data["numbersGrid"]
    assert (len(grid), len(grid[0]), len(grid[0][0])) == (3, 12, 40)


def test_full_match_completes_on_second_submission(services, match_id, notifier) -> None:
    _, matches = services
    grid = _advance_to_recall(matches, match_id)
    match = matches.get_match(match_id)

    first = matches.submit_answers(match_id, match.player1_id, _recall_rows(grid, 2))
    assert first.total_score == 80
    assert matches.get_match(match_id).status == "recall"

    second = matches.submit_answers(match_id, match.player2_id, _recall_rows(grid, 1))
    assert second.total_score == 40

    done = matches.get_match(match_id)
    assert done.status == "completed"
    assert done.result == "player1"
    assert done.winner_id == match.player1_id
    assert (done.player1_rating_change, done.player2_rating_change) == (20, -20)
    assert (done.player1_rating_after, done.player2_rating_after) == (1520, 1480)
    assert done.completed_at is not None
    assert notifier.updates[-1][1]["status"] == "completed"

    history = matches.history_for_player(match.player1_id)
    assert len(history) == 1
    assert history[0].result == "win"
    assert history[0].opponent_rating == 1500
    assert history[0].millennium_score == 25
    assert matches.history_for_player(match.player2_id)[0].result == "loss"


def test_completion_updates_player_records(services, match_id, session_factory) -> None:
    _, matches = services
    grid = _advance_to_recall(matches, match_id)
    match = matches.get_match(match_id)
    matches.submit_answers(match_id, match.player1_id, _recall_rows(grid, 1))
    matches.submit_answers(match_id, match.player2_id, _recall_rows(grid, 1))

    with session_factory() as session:
        player1 = get_player(session, match.player1_id)
        player2 = get_player(session, match.player2_id)

    assert matches.get_match(match_id).result == "draw"
    assert (player1.rating, player1.draws, player1.games_played) == (1500, 1, 1)
    assert (player2.rating, player2.draws, player2.games_played) == (1500, 1, 1)
    assert player1.last_played_at is not None


def test_answers_are_rejected_outside_recall_or_twice(services, match_id, make_player) -> None:
    _, matches = services
    match = matches.get_match(match_id)

    with pytest.raises(AnswerSubmissionError):
        matches.submit_answers(match_id, match.player1_id, [])

    grid = _advance_to_recall(matches, match_id)
    matches.submit_answers(match_id, match.player1_id, _recall_rows(grid, 1))

    with pytest.raises(AnswerSubmissionError):
        matches.submit_answers(match_id, match.player1_id, _recall_rows(grid, 1))
    with pytest.raises(MatchParticipantError):
        matches.submit_answers(match_id, make_player(), _recall_rows(grid, 1))


def test_complete_match_happens_exactly_once(services, match_id) -> None:
    _, matches = services
    _advance_to_recall(matches, match_id)

    completed = matches.complete_match(match_id)
    assert completed.result == "draw"
    assert (completed.player1_score, completed.player2_score) == (0, 0)

    with pytest.raises(InvalidTransitionError):
        matches.complete_match(match_id)


def test_out_of_order_phase_change_raises(services, match_id) -> None:
    _, matches = services

    with pytest.raises(InvalidTransitionError):
        matches.begin_recall(match_id)
    assert matches.get_match(match_id).status == "waiting_for_players"


def test_unknown_match_raises(services) -> None:
    _, matches = services

    with pytest.raises(MatchNotFoundError):
        matches.get_match(999)
    with pytest.raises(MatchNotFoundError):
        matches.cancel_match(999)


def test_memorization_disconnect_pauses_and_reconnect_resumes(services, match_id) -> None:
    _, matches = services
    matches.start_countdown(match_id)
    matches.begin_memorization(match_id)
    user_id = matches.get_match(match_id).player2_id

    policy = matches.handle_disconnect(match_id, user_id)
    assert policy.action is DisconnectAction.PAUSE
    assert policy.grace_period_ms == 15_000
    paused = matches.get_match(match_id)
    assert (paused.status, paused.paused_from) == ("paused", "memorization")

    assert matches.handle_reconnect(match_id, user_id) is None
    resumed = matches.get_match(match_id)
    assert (resumed.status, resumed.paused_from) == ("memorization", None)


def test_countdown_reconnect_issues_fresh_game_start(services, match_id, clock) -> None:
    _, matches = services
    first = matches.start_countdown(match_id)
    user_id = matches.get_match(match_id).player1_id
    grid = matches.get_match(match_id).game_data["numbersGrid"]

    matches.handle_disconnect(match_id, user_id)
    clock.advance(8)
    fresh = matches.handle_reconnect(match_id, user_id)

    assert fresh is not None
    assert fresh.game_start_time == first.game_start_time + 8_000
    resumed = matches.get_match(match_id)
    assert resumed.status == "countdown"
    assert resumed.game_data["numbersGrid"] == grid
    assert resumed.game_data["gameStartTime"] == fresh.game_start_time


def test_recall_disconnect_timeout_forfeits_to_opponent(services, match_id, clock) -> None:
    _, matches = services
    grid = _advance_to_recall(matches, match_id)
    match = matches.get_match(match_id)
    matches.submit_answers(match_id, match.player1_id, _recall_rows(grid, 3))

    policy = matches.handle_disconnect(match_id, match.player1_id)
    assert policy.action is DisconnectAction.FORFEIT
    assert matches.get_match(match_id).status == "recall"

    clock.advance(9)
    assert matches.resolve_disconnect_timeout(match_id, match.player1_id).status == "recall"

    clock.advance(1)
    settled = matches.resolve_disconnect_timeout(match_id, match.player1_id)

    assert settled.status == "completed"
    assert settled.result == "player2"
    assert settled.winner_id == match.player2_id
    assert settled.player1_score == 120
    assert settled.player2_score == 0


def test_lobby_disconnect_timeout_cancels(services, match_id, clock) -> None:
    _, matches = services
    user_id = matches.get_match(match_id).player1_id

    assert matches.handle_disconnect(match_id, user_id).action is DisconnectAction.WAIT
    assert matches.resolve_disconnect_timeout(match_id, user_id).status == "waiting_for_players"

    clock.advance(60)
    assert matches.resolve_disconnect_timeout(match_id, user_id).status == "cancelled"
    assert matches.resolve_disconnect_timeout(match_id, user_id).status == "cancelled"


def test_reconnected_recall_player_keeps_playing(services, match_id, clock) -> None:
    _, matches = services
    _advance_to_recall(matches, match_id)
    match = matches.get_match(match_id)

    matches.handle_disconnect(match_id, match.player1_id)
    assert matches.get_match(match_id).player1_disconnected_at == clock()
    clock.advance(2)
    assert matches.handle_reconnect(match_id, match.player1_id) is None
    assert matches.get_match(match_id).player1_disconnected_at is None

    clock.advance(20)
    settled = matches.resolve_disconnect_timeout(match_id, match.player1_id)

    assert settled.status == "recall"
    assert settled.result is None


def test_disconnect_timeout_ignores_connected_player(services, match_id, clock) -> None:
    _, matches = services
    _advance_to_recall(matches, match_id)
    match = matches.get_match(match_id)

    clock.advance(60)

    assert matches.resolve_disconnect_timeout(match_id, match.player2_id).status == "recall"


def test_phase_calls_do_not_resume_a_paused_match(services, match_id) -> None:
    _, matches = services
    matches.start_countdown(match_id)
    user_id = matches.get_match(match_id).player1_id
    matches.handle_disconnect(match_id, user_id)

    with pytest.raises(InvalidTransitionError):
        matches.begin_memorization(match_id)
    with pytest.raises(InvalidTransitionError):
        matches.begin_recall(match_id)
    paused = matches.get_match(match_id)
    assert (paused.status, paused.paused_from) == ("paused", "countdown")

    assert matches.handle_reconnect(match_id, user_id) is not None
    assert matches.begin_memorization(match_id).status == "memorization"


def test_paused_match_resumes_only_when_both_players_are_back(services, match_id) -> None:
    _, matches = services
    matches.start_countdown(match_id)
    matches.begin_memorization(match_id)
    match = matches.get_match(match_id)

    matches.handle_disconnect(match_id, match.player1_id)
    assert matches.handle_disconnect(match_id, match.player2_id).action is DisconnectAction.WAIT

    matches.handle_reconnect(match_id, match.player1_id)
    assert matches.get_match(match_id).status == "paused"

    matches.handle_reconnect(match_id, match.player2_id)
    resumed = matches.get_match(match_id)
    assert (resumed.status, resumed.paused_from) == ("memorization", None)


def test_history_records_millennium_score_with_configured_standard(
    session_factory, clock, make_player
) -> None:
    config = EngineConfig(scoring=ScoringParameters(millennium_standard=1000))
    matchmaking = MatchmakingService(session_factory, config=config, clock=clock)
    matches = MatchService(session_factory, config=config, clock=clock, rng=random.Random(3))
    match = matchmaking.create_match(make_player(), make_player(), "speed", require_queued=False)

    grid = _advance_to_recall(matches, match.id)
    matches.submit_answers(match.id, match.player1_id, _recall_rows(grid, 2))
    matches.submit_answers(match.id, match.player2_id, _recall_rows(grid, 1))

    assert matches.history_for_player(match.player1_id)[0].millennium_score == 80
    assert matches.history_for_player(match.player2_id)[0].millennium_score == 40


def test_age_inactive_players_counts_each_period_once(services, session_factory, make_player, clock) -> None:
    _, matches = services
    player_id = make_player(rating_deviation=50.0)
    with session_factory() as session:
        player = get_player(session, player_id)
        player.last_played_at = clock()
        player.deviation_updated_at = clock()
        session.commit()

    clock.advance(65 * 24 * 3600)
    assert matches.age_inactive_players(30) == 1
    assert matches.age_inactive_players(30) == 0

    with session_factory() as session:
        aged = get_player(session, player_id)
    assert aged.rating_deviation == pytest.approx((50.0**2 + 2 * 34.6**2) ** 0.5)


def test_age_inactive_players_rejects_bad_period(services) -> None:
    _, matches = services

    with pytest.raises(ValueError):
        matches.age_inactive_players(0)
