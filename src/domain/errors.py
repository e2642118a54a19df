"""Exceptions raised by the match engine services."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class MatchEngineError(Exception):
    """Base class for engine-level failures."""


class InvalidTransitionError(MatchEngineError):
    """A required state change is not an edge of the transition table."""

    def __init__(self, current: Any, target: Any, allowed: Iterable[Any]) -> None:
        self.current = current
        self.target = target
        self.allowed = frozenset(allowed)
        allowed_names = ", ".join(sorted(str(getattr(state, "value", state)) for state in self.allowed))
        super().__init__(
            f"invalid transition {getattr(current, 'value', current)} -> "
            f"{getattr(target, 'value', target)}; allowed=[{allowed_names}]"
        )


class MatchNotFoundError(MatchEngineError):
    def __init__(self, match_id: int) -> None:
        self.match_id = match_id
        super().__init__(f"match_id={match_id} not found")


class PlayerNotFoundError(MatchEngineError):
    def __init__(self, player_id: int) -> None:
        self.player_id = player_id
        super().__init__(f"player_id={player_id} not found")


class MatchParticipantError(MatchEngineError):
    def __init__(self, match_id: int, user_id: int) -> None:
        self.match_id = match_id
        self.user_id = user_id
        super().__init__(f"user_id={user_id} is not a participant of match_id={match_id}")


class AnswerSubmissionError(MatchEngineError):
    """Answers submitted outside RECALL, or submitted twice."""


__all__ = [
    "AnswerSubmissionError",
    "InvalidTransitionError",
    "MatchEngineError",
    "MatchNotFoundError",
    "MatchParticipantError",
    "PlayerNotFoundError",
]
