"""Server-authoritative countdown synchronisation.

The server fixes ``gameStartTime`` once when a match enters COUNTDOWN and
broadcasts it inside a GAME_START message. Each client estimates its clock
offset from ``serverTime`` at receipt and ticks down to the shared start
instant, so both players begin memorising together regardless of latency
drift in later messages.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from math import ceil
from typing import Any, Final

logger = logging.getLogger(__name__)

GAME_START: Final[str] = "GAME_START"
DEFAULT_TICK_INTERVAL: Final[float] = 0.1


def epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class GameStartMessage:
    server_time: int
    game_start_time: int
    countdown_duration: int
    type: str = GAME_START

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "serverTime": self.server_time,
            "gameStartTime": self.game_start_time,
            "countdownDuration": self.countdown_duration,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> GameStartMessage:
        message_type = str(payload.get("type", GAME_START))
        if message_type != GAME_START:
            raise ValueError(f"unexpected message type={message_type!r}")
        return cls(
            server_time=int(payload["serverTime"]),
            game_start_time=int(payload["gameStartTime"]),
            countdown_duration=int(payload["countdownDuration"]),
        )


def build_game_start_message(countdown_duration: int, *, now_ms: int | None = None) -> GameStartMessage:
    """Compute the authoritative start instant once, on the server."""
    server_time = epoch_millis() if now_ms is None else now_ms
    return GameStartMessage(
        server_time=server_time,
        game_start_time=server_time + countdown_duration * 1000,
        countdown_duration=countdown_duration,
    )


def remaining_millis(game_start_time: int, offset_ms: int, local_now_ms: int) -> int:
    """Milliseconds until start as seen by a client whose clock lags the server by ``offset_ms``."""
    return max(0, game_start_time - (local_now_ms + offset_ms))


class CountdownSync:
    """Client-side ticker that fires ``on_game_start`` exactly once at the shared start time.

    Every COUNTDOWN entry should go through ``handle_game_start``, which stops
    any previous loop and starts a fresh one. ``stop`` cancels a pending start.
    """

    def __init__(
        self,
        on_game_start: Callable[[], None] | None = None,
        *,
        on_tick: Callable[[int], None] | None = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        local_clock: Callable[[], int] = epoch_millis,
    ) -> None:
        if tick_interval <= 0.0:
            raise ValueError("tick_interval must be greater than 0")
        self._on_game_start = on_game_start
        self._on_tick = on_tick
        self._tick_interval = tick_interval
        self._local_clock = local_clock
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None
        self._message: GameStartMessage | None = None
        self._offset_ms = 0
        self._fired = False

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def arm(self, message: GameStartMessage | Mapping[str, Any]) -> None:
        """Record a GAME_START message and the clock offset measured at receipt."""
        if not isinstance(message, GameStartMessage):
            message = GameStartMessage.from_payload(message)
        with self._lock:
            self._message = message
            self._offset_ms = message.server_time - self._local_clock()
            self._fired = False
            self._cancel = threading.Event()

    def remaining(self) -> int:
        if self._message is None:
            raise RuntimeError("countdown is not armed")
        return remaining_millis(self._message.game_start_time, self._offset_ms, self._local_clock())

    def tick(self) -> bool:
        """Advance once; returns True when the countdown is over (fired or cancelled)."""
        if self._cancel.is_set():
            return True
        remaining = self.remaining()
        if remaining > 0:
            if self._on_tick is not None:
                self._on_tick(ceil(remaining / 1000))
            return False

        with self._lock:
            if self._fired or self._cancel.is_set():
                return True
            self._fired = True
        logger.debug("countdown reached zero offset_ms=%s", self._offset_ms)
        if self._on_game_start is not None:
            self._on_game_start()
        return True

    def start(self) -> None:
        """Run the ticker on a background thread; a stopped countdown must be re-armed first."""
        if self._message is None:
            raise RuntimeError("countdown is not armed")
        if self._cancel.is_set():
            raise RuntimeError("countdown was stopped; arm it again before starting")
        cancel = self._cancel
        self._thread = threading.Thread(target=self._run, args=(cancel,), name="countdown-sync", daemon=True)
        self._thread.start()

    def handle_game_start(self, message: GameStartMessage | Mapping[str, Any]) -> None:
        self.stop()
        self.arm(message)
        self.start()

    def stop(self) -> None:
        self._cancel.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, cancel: threading.Event) -> None:
        while not cancel.is_set():
            if self.tick():
                return
            cancel.wait(self._tick_interval)


__all__ = [
    "CountdownSync",
    "GAME_START",
    "GameStartMessage",
    "build_game_start_message",
    "epoch_millis",
    "remaining_millis",
]
