"""Match phase state machine and per-state disconnection policy."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Final

from domain.common import Clock, utc_now
from domain.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class MatchState(str, Enum):
    CREATED = "created"
    WAITING_FOR_PLAYERS = "waiting_for_players"
    COUNTDOWN = "countdown"
    MEMORIZATION = "memorization"
    RECALL = "recall"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class DisconnectAction(str, Enum):
    PAUSE = "PAUSE"
    FORFEIT = "FORFEIT"
    WAIT = "WAIT"
    NONE = "NONE"


@dataclass(frozen=True)
class DisconnectionPolicy:
    grace_period_ms: int
    action: DisconnectAction
    allow_reconnect: bool


TERMINAL_STATES: Final[frozenset[MatchState]] = frozenset({MatchState.COMPLETED, MatchState.CANCELLED})

VALID_TRANSITIONS: Final[Mapping[MatchState, frozenset[MatchState]]] = MappingProxyType(
    {
        MatchState.CREATED: frozenset({MatchState.WAITING_FOR_PLAYERS, MatchState.CANCELLED}),
        MatchState.WAITING_FOR_PLAYERS: frozenset({MatchState.COUNTDOWN, MatchState.CANCELLED}),
        MatchState.COUNTDOWN: frozenset(
            {MatchState.MEMORIZATION, MatchState.PAUSED, MatchState.CANCELLED}
        ),
        MatchState.MEMORIZATION: frozenset({MatchState.RECALL, MatchState.PAUSED, MatchState.CANCELLED}),
        MatchState.RECALL: frozenset({MatchState.COMPLETED, MatchState.PAUSED, MatchState.CANCELLED}),
        MatchState.PAUSED: frozenset(
            {
                MatchState.COUNTDOWN,
                MatchState.MEMORIZATION,
                MatchState.RECALL,
                MatchState.CANCELLED,
            }
        ),
        MatchState.COMPLETED: frozenset(),
        MatchState.CANCELLED: frozenset(),
    }
)

_LOBBY_POLICY = DisconnectionPolicy(grace_period_ms=60_000, action=DisconnectAction.WAIT, allow_reconnect=True)
_TERMINAL_POLICY = DisconnectionPolicy(grace_period_ms=0, action=DisconnectAction.NONE, allow_reconnect=False)

DISCONNECTION_POLICIES: Final[Mapping[MatchState, DisconnectionPolicy]] = MappingProxyType(
    {
        MatchState.CREATED: _LOBBY_POLICY,
        MatchState.WAITING_FOR_PLAYERS: _LOBBY_POLICY,
        MatchState.COUNTDOWN: DisconnectionPolicy(10_000, DisconnectAction.PAUSE, True),
        MatchState.MEMORIZATION: DisconnectionPolicy(15_000, DisconnectAction.PAUSE, True),
        # The recall clock keeps running; a player who reconnects just has less time.
        MatchState.RECALL: DisconnectionPolicy(10_000, DisconnectAction.FORFEIT, True),
        MatchState.PAUSED: _LOBBY_POLICY,
        MatchState.COMPLETED: _TERMINAL_POLICY,
        MatchState.CANCELLED: _TERMINAL_POLICY,
    }
)


def allowed_transitions(state: MatchState | str) -> frozenset[MatchState]:
    return VALID_TRANSITIONS[MatchState(state)]


def disconnection_policy(state: MatchState | str) -> DisconnectionPolicy:
    return DISCONNECTION_POLICIES[MatchState(state)]


@dataclass(frozen=True)
class StateChange:
    state: MatchState
    timestamp: datetime

    def as_json(self) -> dict[str, str]:
        return {"state": self.state.value, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> StateChange:
        return cls(
            state=MatchState(payload["state"]),
            timestamp=datetime.fromisoformat(str(payload["timestamp"])),
        )


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition request; a rejection leaves the machine untouched."""

    accepted: bool
    previous_state: MatchState
    current_state: MatchState
    target: MatchState
    allowed: frozenset[MatchState]

    def __bool__(self) -> bool:
        return self.accepted


TransitionListener = Callable[[MatchState, MatchState, Any], None]


class MatchStateMachine:
    """Finite automaton over MatchState with an append-only history log."""

    def __init__(
        self,
        initial_state: MatchState | str = MatchState.CREATED,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._clock = clock
        self._state = MatchState(initial_state)
        self._history: list[StateChange] = [StateChange(self._state, self._clock())]
        self._listeners: list[TransitionListener] = []

    @classmethod
    def from_history(
        cls,
        entries: Iterable[Mapping[str, Any] | StateChange],
        *,
        clock: Clock = utc_now,
    ) -> MatchStateMachine:
        """Rebuild a machine from a stored history log."""
        history = [entry if isinstance(entry, StateChange) else StateChange.from_json(entry) for entry in entries]
        if not history:
            return cls(clock=clock)
        machine = cls(history[-1].state, clock=clock)
        machine._history = history
        return machine

    @property
    def state(self) -> MatchState:
        return self._state

    def history(self) -> tuple[StateChange, ...]:
        return tuple(self._history)

    def history_json(self) -> list[dict[str, str]]:
        return [entry.as_json() for entry in self._history]

    def add_listener(self, listener: TransitionListener) -> None:
        """Register a callback receiving (previous, current, metadata) after each transition."""
        self._listeners.append(listener)

    def can_transition(self, target: MatchState | str) -> bool:
        return MatchState(target) in VALID_TRANSITIONS[self._state]

    def transition(self, target: MatchState | str, metadata: Any = None) -> TransitionResult:
        target_state = MatchState(target)
        previous = self._state
        allowed = VALID_TRANSITIONS[previous]

        if target_state not in allowed:
            logger.warning(
                "invalid transition %s -> %s allowed=%s",
                previous.value,
                target_state.value,
                sorted(state.value for state in allowed),
            )
            return TransitionResult(
                accepted=False,
                previous_state=previous,
                current_state=previous,
                target=target_state,
                allowed=allowed,
            )

        logger.debug("exiting state=%s metadata=%s", previous.value, metadata)
        self._state = target_state
        self._history.append(StateChange(target_state, self._clock()))
        logger.debug("entering state=%s from=%s metadata=%s", target_state.value, previous.value, metadata)

        for listener in self._listeners:
            listener(previous, target_state, metadata)

        return TransitionResult(
            accepted=True,
            previous_state=previous,
            current_state=target_state,
            target=target_state,
            allowed=allowed,
        )

    def require(self, target: MatchState | str, metadata: Any = None) -> TransitionResult:
        """Transition or raise InvalidTransitionError."""
        result = self.transition(target, metadata)
        if not result.accepted:
            raise InvalidTransitionError(result.previous_state, result.target, result.allowed)
        return result

    def disconnection_policy(self, state: MatchState | str | None = None) -> DisconnectionPolicy:
        return DISCONNECTION_POLICIES[self._state if state is None else MatchState(state)]

    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def reset(self) -> None:
        self._state = MatchState.CREATED
        self._history = [StateChange(MatchState.CREATED, self._clock())]


__all__ = [
    "DISCONNECTION_POLICIES",
    "DisconnectAction",
    "DisconnectionPolicy",
    "MatchState",
    "MatchStateMachine",
    "StateChange",
    "TERMINAL_STATES",
    "TransitionResult",
    "VALID_TRANSITIONS",
    "allowed_transitions",
    "disconnection_policy",
]
