"""ORM models."""

from models.base import Base, JSONType
from models.history import MatchHistory
from models.match import MATCH_STATUSES, Match
from models.player import PlayerProfile
from models.queue import QueueEntry

__all__ = [
    "Base",
    "JSONType",
    "MATCH_STATUSES",
    "Match",
    "MatchHistory",
    "PlayerProfile",
    "QueueEntry",
]
