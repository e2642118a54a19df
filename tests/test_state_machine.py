"""Tests for the match state machine and disconnection policies."""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from domain.errors import InvalidTransitionError
from domain.match.state_machine import (
    DISCONNECTION_POLICIES,
    VALID_TRANSITIONS,
    DisconnectAction,
    DisconnectionPolicy,
    MatchState,
    MatchStateMachine,
    allowed_transitions,
)

EXPECTED_TRANSITIONS = {
    MatchState.CREATED: {MatchState.WAITING_FOR_PLAYERS, MatchState.CANCELLED},
    MatchState.WAITING_FOR_PLAYERS: {MatchState.COUNTDOWN, MatchState.CANCELLED},
    MatchState.COUNTDOWN: {MatchState.MEMORIZATION, MatchState.PAUSED, MatchState.CANCELLED},
    MatchState.MEMORIZATION: {MatchState.RECALL, MatchState.PAUSED, MatchState.CANCELLED},
    MatchState.RECALL: {MatchState.COMPLETED, MatchState.PAUSED, MatchState.CANCELLED},
    MatchState.PAUSED: {
        MatchState.COUNTDOWN,
        MatchState.MEMORIZATION,
        MatchState.RECALL,
        MatchState.CANCELLED,
    },
    MatchState.COMPLETED: set(),
    MatchState.CANCELLED: set(),
}


def test_every_state_has_transitions_and_a_policy() -> None:
    assert set(VALID_TRANSITIONS) == set(MatchState)
    assert set(DISCONNECTION_POLICIES) == set(MatchState)


@pytest.mark.parametrize("source", list(MatchState))
def test_transition_table_matches_allowed_edges(source: MatchState) -> None:
    assert allowed_transitions(source) == EXPECTED_TRANSITIONS[source]

    for target in MatchState:
        machine = MatchStateMachine(source)
        result = machine.transition(target)
        assert result.accepted is (target in EXPECTED_TRANSITIONS[source])
        assert machine.state == (target if result.accepted else source)


def test_rejected_transition_reports_state_and_leaves_machine_untouched(caplog: pytest.LogCaptureFixture) -> None:
    machine = MatchStateMachine()
    before = machine.history()

    with caplog.at_level(logging.WARNING):
        result = machine.transition(MatchState.RECALL)

    assert not result
    assert result.current_state == MatchState.CREATED
    assert result.allowed == frozenset({MatchState.WAITING_FOR_PLAYERS, MatchState.CANCELLED})
    assert machine.state == MatchState.CREATED
    assert machine.history() == before
    assert "invalid transition created -> recall" in caplog.text


def test_history_records_each_state_with_clock_timestamps(clock) -> None:
    machine = MatchStateMachine(clock=clock)
    clock.advance(3)
    machine.transition(MatchState.WAITING_FOR_PLAYERS)
    clock.advance(2)
    machine.transition(MatchState.COUNTDOWN)

    history = machine.history()
    assert [entry.state for entry in history] == [
        MatchState.CREATED,
        MatchState.WAITING_FOR_PLAYERS,
        MatchState.COUNTDOWN,
    ]
    assert history[0].timestamp == datetime(2026, 1, 1, 12, 0, 0)
    assert history[2].timestamp == datetime(2026, 1, 1, 12, 0, 5)


def test_terminal_states_and_reset() -> None:
    machine = MatchStateMachine(MatchState.RECALL)
    assert not machine.is_terminal()
    assert machine.transition(MatchState.COMPLETED)
    assert machine.is_terminal()
    assert not machine.can_transition(MatchState.CANCELLED)

    machine.reset()
    assert machine.state == MatchState.CREATED
    assert [entry.state for entry in machine.history()] == [MatchState.CREATED]


def test_require_raises_with_both_states() -> None:
    machine = MatchStateMachine(MatchState.COMPLETED)

    with pytest.raises(InvalidTransitionError) as excinfo:
        machine.require(MatchState.RECALL)

    assert excinfo.value.current == MatchState.COMPLETED
    assert excinfo.value.target == MatchState.RECALL
    assert excinfo.value.allowed == frozenset()


def test_recall_policy_forfeits_without_pausing_the_clock() -> None:
    assert DISCONNECTION_POLICIES[MatchState.RECALL] == DisconnectionPolicy(
        grace_period_ms=10_000,
        action=DisconnectAction.FORFEIT,
        allow_reconnect=True,
    )


@pytest.mark.parametrize(
    ("state", "grace_ms", "action", "reconnect"),
    [
        (MatchState.CREATED, 60_000, DisconnectAction.WAIT, True),
        (MatchState.WAITING_FOR_PLAYERS, 60_000, DisconnectAction.WAIT, True),
        (MatchState.PAUSED, 60_000, DisconnectAction.WAIT, True),
        (MatchState.COUNTDOWN, 10_000, DisconnectAction.PAUSE, True),
        (MatchState.MEMORIZATION, 15_000, DisconnectAction.PAUSE, True),
        (MatchState.COMPLETED, 0, DisconnectAction.NONE, False),
        (MatchState.CANCELLED, 0, DisconnectAction.NONE, False),
    ],
)
def test_disconnection_policy_per_state(
    state: MatchState,
    grace_ms: int,
    action: DisconnectAction,
    reconnect: bool,
) -> None:
    policy = MatchStateMachine(state).disconnection_policy()
    assert policy.grace_period_ms == grace_ms
    assert policy.action is action
    assert policy.allow_reconnect is reconnect


def test_from_history_restores_last_state_and_listeners_see_transitions() -> None:
    source = MatchStateMachine()
    source.transition(MatchState.WAITING_FOR_PLAYERS)
    source.transition(MatchState.COUNTDOWN)

    restored = MatchStateMachine.from_history(source.history_json())
    assert restored.state == MatchState.COUNTDOWN
    assert restored.history() == source.history()

    seen: list[tuple[MatchState, MatchState, object]] = []
    restored.add_listener(lambda previous, current, metadata: seen.append((previous, current, metadata)))
    restored.transition(MatchState.PAUSED, {"user_id": 7})
    restored.transition(MatchState.COMPLETED.value)

    assert seen == [(MatchState.COUNTDOWN, MatchState.PAUSED, {"user_id": 7})]
