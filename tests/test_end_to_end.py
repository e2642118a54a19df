"""Queue to completed match with persisted ratings."""

from __future__ import annotations

import random

from domain.match.service import MatchService
from domain.matchmaking.service import MatchmakingService
from domain.scoring import calculate_millennium_score
from repositories.player_repository import get_player


def test_queue_to_rated_result(session_factory, clock, make_player) -> None:
    alice = make_player(1500, games_played=30)
    bob = make_player(1500, games_played=30)
    matchmaking = MatchmakingService(session_factory, clock=clock)
    matches = MatchService(session_factory, clock=clock, rng=random.Random(11))

    assert matchmaking.match_on_join(alice, 1500, "speed") is None
    clock.advance(4)
    match = matchmaking.match_on_join(bob, 1500, "speed")
    assert match is not None
    assert matchmaking.get_queued_players() == []

    matches.mark_ready(match.id, alice)
    assert matches.mark_ready(match.id, bob) is not None
    clock.advance(5)
    matches.begin_memorization(match.id)
    clock.advance(300)
    matches.begin_recall(match.id)

    grid = matches.get_match(match.id).game_data["numbersGrid"]
    winning_sheet = [[[str(digit) for digit in row] for row in page] for page in grid]
    losing_sheet = [[[""] * len(row) for row in page] for page in grid]
    losing_sheet[0][0] = [str(digit) for digit in grid[0][0]]

    winner_result = matches.submit_answers(match.id, bob, winning_sheet)
    matches.submit_answers(match.id, alice, losing_sheet)

    assert winner_result.total_score == 3 * 12 * 40
    done = matches.get_match(match.id)
    assert done.status == "completed"
    assert done.winner_id == bob
    assert done.player1_id == bob
    assert (done.player1_rating_change, done.player2_rating_change) == (10, -10)
    assert [entry["state"] for entry in done.state_history] == [
        "created",
        "waiting_for_players",
        "countdown",
        "memorization",
        "recall",
        "completed",
    ]

    with session_factory() as session:
        winner = get_player(session, bob)
        loser = get_player(session, alice)
    assert (winner.rating, winner.peak_rating, winner.wins, winner.games_played) == (1510, 1510, 1, 31)
    assert (loser.rating, loser.peak_rating, loser.losses) == (1490, 1500, 1)

    assert calculate_millennium_score(3200) == 989
