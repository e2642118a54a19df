"""Match phases, countdown sync and lifecycle orchestration."""

from domain.match.countdown import CountdownSync, GameStartMessage, build_game_start_message
from domain.match.state_machine import (
    DISCONNECTION_POLICIES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    DisconnectAction,
    DisconnectionPolicy,
    MatchState,
    MatchStateMachine,
    TransitionResult,
)

__all__ = [
    "CountdownSync",
    "DISCONNECTION_POLICIES",
    "DisconnectAction",
    "DisconnectionPolicy",
    "GameStartMessage",
    "MatchState",
    "MatchStateMachine",
    "TERMINAL_STATES",
    "TransitionResult",
    "VALID_TRANSITIONS",
    "build_game_start_message",
]
