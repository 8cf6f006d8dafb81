# core/sequencer.py
"""
Tone sequencer: timed, cancellable playback of a Song on one oscillator.

State machine:
    Idle    --play/toggle-->  Playing
    Playing --toggle/stop-->  Idle      (immediate, any tick phase)
    Playing --past end--->    Idle      (on the tick after the last tone)

One tick per tone, spaced by the song's tone duration. On each tick the
current token's frequency is set at the oscillator's clock time, the
oscillator is started if it is still suspended and it is (re)connected to the
output. Tokens with no table entry play as silence.

Only one session, and therefore one timer, exists at a time. Ticks belonging
to a session that has been stopped or replaced are ignored, so nothing
reaches the oscillator after stop() returns.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from core.notes import Song, frequency_of

logger = logging.getLogger(__name__)


class Oscillator(Protocol):
    state: str  # "suspended" until start(), then "running"

    @property
    def current_time(self) -> float: ...

    def set_frequency(self, hz: int, at: float) -> None: ...

    def start(self) -> None: ...

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def reset(self) -> None: ...  # called at the start of every session


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TickScheduler(Protocol):
    def every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle: ...


class _LoopTimer:
    """Repeating call_later chain; cancel() also drops an already-queued call."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval_s: float, callback: Callable[[], None]) -> None:
        self._loop = loop
        self._interval = interval_s
        self._callback = callback
        self._cancelled = False
        self._handle = loop.call_later(interval_s, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Tick callback failed")
        if not self._cancelled:
            self._handle = self._loop.call_later(self._interval, self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class LoopTickScheduler:
    """Ticks on the asyncio event loop (single thread, cooperative)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def every(self, interval_s: float, callback: Callable[[], None]) -> _LoopTimer:
        loop = self._loop or asyncio.get_running_loop()
        return _LoopTimer(loop, interval_s, callback)


class PlaybackState(str, Enum):
    idle = "idle"
    playing = "playing"


@dataclass
class PlaybackSession:
    song: Song
    index: int = 0
    timer: Optional[TimerHandle] = None


class ToneSequencer:
    def __init__(self, oscillator: Oscillator, scheduler: TickScheduler, *, min_tick_ms: int = 1) -> None:
        self.oscillator = oscillator
        self.scheduler = scheduler
        self.min_tick_ms = max(1, int(min_tick_ms))
        self._session: Optional[PlaybackSession] = None

    # ----------------------------
    # State
    # ----------------------------
    @property
    def state(self) -> PlaybackState:
        return PlaybackState.playing if self._session is not None else PlaybackState.idle

    @property
    def is_playing(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    # ----------------------------
    # Transitions
    # ----------------------------
    def play(self, song: Song) -> PlaybackSession:
        """Start `song`, replacing any session already playing."""
        if self._session is not None:
            self.stop()

        self.oscillator.reset()
        session = PlaybackSession(song=song)
        self._session = session
        interval_s = max(self.min_tick_ms, int(song.tone_duration_ms)) / 1000.0
        session.timer = self.scheduler.every(interval_s, lambda: self._tick(session))
        logger.info("Playback started: %s (%d tones @ %d ms)", song.name, len(song), song.tone_duration_ms)
        return session

    def toggle(self, song: Song) -> bool:
        """Play if idle, stop if playing. Returns whether playback is now active."""
        if self._session is not None:
            self.stop()
            return False
        self.play(song)
        return True

    def stop(self) -> bool:
        """Stop immediately. Returns False when nothing was playing."""
        session = self._session
        if session is None:
            return False
        self._release(session)
        logger.info("Playback stopped: %s at tone %d/%d", session.song.name, session.index, len(session.song))
        return True

    def _release(self, session: PlaybackSession) -> None:
        self._session = None
        if session.timer is not None:
            session.timer.cancel()
        self.oscillator.disconnect()

    def _tick(self, session: PlaybackSession) -> None:
        if session is not self._session:
            return

        if session.index > len(session.song) - 1:
            self._release(session)
            logger.info("Playback finished: %s", session.song.name)
            return

        hz = frequency_of(session.song.tokens[session.index]) or 0
        osc = self.oscillator
        osc.set_frequency(hz, osc.current_time)
        if osc.state == "suspended":
            osc.start()
        osc.connect()
        session.index += 1
