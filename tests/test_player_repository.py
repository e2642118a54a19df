from __future__ import annotations

import pytest

from domain.rating import RatingParameters
from repositories.player_repository import apply_match_outcome, create_player, get_player, list_top_players


def test_list_top_players_orders_by_rating_and_filters_games(session_factory, make_player) -> None:
    low = make_player(1400, games_played=5)
    high = make_player(1700, games_played=5)
    make_player(1900, games_played=0)
    tied = make_player(1400, games_played=12)

    with session_factory() as session:
        ranked = [player.id for player in list_top_players(session, limit=10, min_games=1)]
        top_one = [player.id for player in list_top_players(session, limit=1)]

    assert ranked == [high, low, tied]
    assert len(top_one) == 1


def test_apply_match_outcome_tracks_peak_and_counters(session_factory, make_player, clock) -> None:
    player_id = make_player(1500)

    with session_factory() as session:
        player = get_player(session, player_id)
        apply_match_outcome(player, new_rating=1520, outcome="win", played_at=clock())
        apply_match_outcome(player, new_rating=1490, outcome="loss", played_at=clock())
        session.commit()

    with session_factory() as session:
        player = get_player(session, player_id)
        assert player.rating == 1490
        assert player.peak_rating == 1520
        assert (player.games_played, player.wins, player.losses, player.draws) == (2, 1, 1, 0)
        assert player.last_played_at == clock()

        with pytest.raises(ValueError, match="outcome="):
            apply_match_outcome(player, new_rating=1500, outcome="abandoned", played_at=clock())


def test_create_player_defaults_to_rating_parameters(session_factory, clock) -> None:
    with session_factory() as session:
        default = create_player(session, now=clock())
        custom = create_player(session, now=clock(), params=RatingParameters(initial_rating=1000))

        assert default.rating == 1500
        assert default.rating_deviation == pytest.approx(350.0)
        assert (custom.rating, custom.peak_rating) == (1000, 1000)
