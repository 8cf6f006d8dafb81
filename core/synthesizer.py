# core/synthesizer.py
"""
Buzzer preview synthesis.

- square-wave rendering of a Song (what a passive buzzer driven by PWM sounds like)
- RecordingOscillator: the software oscillator the tone sequencer drives in the
  service; it keeps the audible timeline so a playback can be rendered later
- WAV export through soundfile
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import soundfile as sf

from core.config import get_settings
from core.notes import Song, frequency_of

logger = logging.getLogger(__name__)

# Full-scale square waves are harsh; keep headroom even at volume 100
_PEAK = 0.5


def _square(hz: int, n: int, sample_rate: int, amplitude: float, phase_s: float = 0.0) -> np.ndarray:
    if hz <= 0 or n <= 0 or amplitude <= 0:
        return np.zeros(max(n, 0), dtype=np.float32)
    t = phase_s + np.arange(n, dtype=np.float64) / sample_rate
    wave = np.where(np.sin(2.0 * np.pi * hz * t) >= 0.0, 1.0, -1.0)
    return (wave * amplitude).astype(np.float32)


def _amplitude(volume: int) -> float:
    v = min(max(int(volume), 0), 100)
    return _PEAK * v / 100.0


def render_song(
    tokens: Sequence[Optional[str]],
    tone_duration_ms: int,
    *,
    sample_rate: Optional[int] = None,
    volume: int = 100,
) -> np.ndarray:
    """
    Tokens -> mono float32 samples.

    Each token lasts tone_duration_ms; PAUSE, unknown tokens and decode holes
    are silence (same policy as live playback).
    """
    sr = int(sample_rate or get_settings().preview_sample_rate)
    per_tone = int(round(sr * max(int(tone_duration_ms), 0) / 1000.0))
    amp = _amplitude(volume)

    chunks = [_square(frequency_of(tok) or 0, per_tone, sr, amp) for tok in tokens]
    if not chunks:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(chunks)


def render_timeline(
    events: Sequence[Tuple[float, int]],
    end_time: float,
    *,
    sample_rate: Optional[int] = None,
    volume: int = 100,
) -> np.ndarray:
    """
    Audible (time_s, hz) changes -> samples from t=0 to end_time.

    Before the first event the output is silent.
    """
    sr = int(sample_rate or get_settings().preview_sample_rate)
    total = max(int(round(end_time * sr)), 0)
    out = np.zeros(total, dtype=np.float32)
    amp = _amplitude(volume)

    ordered = sorted(events, key=lambda e: e[0])
    for i, (t, hz) in enumerate(ordered):
        start = min(max(int(round(t * sr)), 0), total)
        stop = total
        if i + 1 < len(ordered):
            stop = min(max(int(round(ordered[i + 1][0] * sr)), start), total)
        out[start:stop] = _square(hz, stop - start, sr, amp, phase_s=t)
    return out


def write_wav(samples: np.ndarray, out_path: Union[str, Path], *, sample_rate: Optional[int] = None) -> Path:
    sr = int(sample_rate or get_settings().preview_sample_rate)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    sf.write(str(out_path), samples, sr, subtype="PCM_16")

    if not out_path.exists() or out_path.stat().st_size == 0:
        raise RuntimeError(f"WAV export produced no data: {out_path}")
    return out_path


def write_song_wav(
    song: Song,
    out_path: Union[str, Path],
    *,
    sample_rate: Optional[int] = None,
    volume: int = 100,
) -> Path:
    sr = int(sample_rate or get_settings().preview_sample_rate)
    samples = render_song(song.tokens, song.tone_duration_ms, sample_rate=sr, volume=volume)
    path = write_wav(samples, out_path, sample_rate=sr)
    logger.info("[Synth] %s -> %s (%d tones, %.2fs)", song.name, path.name, len(song), len(samples) / sr)
    return path


class RecordingOscillator:
    """
    Software square-wave oscillator for the tone sequencer.

    Mirrors the browser oscillator the configurator page used: it starts
    "suspended", can be started once, and is audible only while connected.
    Every change of the audible frequency is kept in `timeline`, which holds
    the current playback session only.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._t0 = clock()
        self.state = "suspended"
        self.connected = False
        self.frequency = 0
        self.timeline: List[Tuple[float, int]] = []

    @property
    def current_time(self) -> float:
        return self._clock() - self._t0

    def _emit(self, at: Optional[float] = None) -> None:
        t = self.current_time if at is None else at
        audible = self.frequency if (self.connected and self.state == "running") else 0
        if self.timeline and self.timeline[-1][1] == audible:
            return
        self.timeline.append((t, audible))

    def set_frequency(self, hz: int, at: float) -> None:
        self.frequency = int(hz)
        self._emit(at)

    def start(self) -> None:
        if self.state != "suspended":
            raise RuntimeError("Oscillator already started")
        self.state = "running"
        self._emit()

    def connect(self) -> None:
        if not self.connected:
            self.connected = True
            self._emit()

    def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            self._emit()

    def reset(self) -> None:
        """Forget the previous recording; time restarts at 0."""
        self._t0 = self._clock()
        self.timeline = []

    @property
    def has_recording(self) -> bool:
        return any(hz for _, hz in self.timeline)

    def render(
        self,
        *,
        end_time: Optional[float] = None,
        sample_rate: Optional[int] = None,
        volume: int = 100,
    ) -> np.ndarray:
        """Samples of the current recording, up to end_time (default: now)."""
        end = self.current_time if end_time is None else end_time
        return render_timeline(self.timeline, end, sample_rate=sample_rate, volume=volume)
