"""Outbound notification seam for match updates."""

from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class MatchNotifier(Protocol):
    """Pushes match row changes to connected clients (realtime channel, websocket, ...)."""

    def match_updated(self, match_id: int, payload: dict[str, Any]) -> None: ...


class NullNotifier:
    """Default notifier: drops every update."""

    def match_updated(self, match_id: int, payload: dict[str, Any]) -> None:
        logger.debug("match_id=%s update not delivered status=%s", match_id, payload.get("status"))


__all__ = ["MatchNotifier", "NullNotifier"]
