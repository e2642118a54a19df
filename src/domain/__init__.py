"""Match-engine domain modules."""

from domain.events import EventType, PhaseTimings
from domain.rating import MatchResult, PlayerRating
from domain.scoring import ScoringResult, ScoringVariant

__all__ = [
    "EventType",
    "MatchResult",
    "PhaseTimings",
    "PlayerRating",
    "ScoringResult",
    "ScoringVariant",
]
