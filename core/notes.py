# core/notes.py
"""
Buzzer note table and song codec.

A song travels in two shapes:
- text: "C4,E4,G4,PAUSE,C5" (whitespace ignored, case-insensitive)
- frequencies: [262, 330, 392, 0, 523] (catalogue songs stored on the device)

The note table is the whole vocabulary. It is fixed and mirrors the table the
firmware plays from, including its gaps (there is no D1).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence

from core.errors import DecodeError, RangeError, VocabularyError

logger = logging.getLogger(__name__)

SONG_LENGTH_LIMIT = 250
SILENCE = "PAUSE"

_WS_RE = re.compile(r"\s+")

NOTE_TABLE: Mapping[str, int] = MappingProxyType(
    {
        "B0": 31,
        "C1": 33, "CS1": 35, "DS1": 39, "E1": 41, "F1": 44, "FS1": 46,
        "G1": 49, "GS1": 52, "A1": 55, "AS1": 58, "B1": 62,
        "C2": 65, "CS2": 69, "D2": 73, "DS2": 78, "E2": 82, "F2": 87, "FS2": 93,
        "G2": 98, "GS2": 104, "A2": 110, "AS2": 117, "B2": 123,
        "C3": 131, "CS3": 139, "D3": 147, "DS3": 156, "E3": 165, "F3": 175, "FS3": 185,
        "G3": 196, "GS3": 208, "A3": 220, "AS3": 233, "B3": 247,
        "C4": 262, "CS4": 277, "D4": 294, "DS4": 311, "E4": 330, "F4": 349, "FS4": 370,
        "G4": 392, "GS4": 415, "A4": 440, "AS4": 466, "B4": 494,
        "C5": 523, "CS5": 554, "D5": 587, "DS5": 622, "E5": 659, "F5": 698, "FS5": 740,
        "G5": 784, "GS5": 831, "A5": 880, "AS5": 932, "B5": 988,
        "C6": 1047, "CS6": 1109, "D6": 1175, "DS6": 1245, "E6": 1319, "F6": 1397, "FS6": 1480,
        "G6": 1568, "GS6": 1661, "A6": 1760, "AS6": 1865, "B6": 1976,
        "C7": 2093, "CS7": 2217, "D7": 2349, "DS7": 2489, "E7": 2637, "F7": 2794, "FS7": 2960,
        "G7": 3136, "GS7": 3322, "A7": 3520, "AS7": 3729, "B7": 3951,
        "C8": 4186, "CS8": 4435, "D8": 4699, "DS8": 4978,
        SILENCE: 0,
    }
)


@dataclass(frozen=True)
class Song:
    """Ordered note tokens played at one uniform tone duration."""

    tokens: tuple
    tone_duration_ms: int
    name: str = field(default="custom", compare=False)

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def text(self) -> str:
        return format_song(self.tokens)


def frequency_of(token: Optional[str]) -> Optional[int]:
    """Hz for a token, or None when the token is not in the table."""
    if token is None:
        return None
    return NOTE_TABLE.get(token.upper())


def strip_song_text(text: str) -> str:
    """Drop whitespace/newlines and upper-case, the way the device stores it."""
    return _WS_RE.sub("", text or "").upper()


def normalize(text: str) -> List[str]:
    """
    Text -> tokens.

    Empty tokens are kept ("C4,,E4" -> ["C4", "", "E4"]); validation then
    rejects them.
    """
    return strip_song_text(text).split(",")


def invalid_tokens(tokens: Sequence[str]) -> List[str]:
    return [t for t in tokens if frequency_of(t) is None]


def validate_song(tokens: Sequence[str]) -> None:
    """Raise VocabularyError carrying exactly the tokens missing from the table."""
    bad = invalid_tokens(tokens)
    if bad:
        raise VocabularyError(bad)


def invalid_notes_message(tokens: Sequence[str]) -> str:
    return str(VocabularyError(tokens))


def check_song_length(text: str) -> None:
    if len(text) > SONG_LENGTH_LIMIT:
        raise RangeError(
            len(text),
            maximum=SONG_LENGTH_LIMIT,
            message=f"Song must be at most {SONG_LENGTH_LIMIT} characters",
        )


def parse_song(text: str, tone_duration_ms: int, *, name: str = "custom") -> Song:
    """
    Validated text -> Song.

    Length is checked on the stored (whitespace-stripped) form before the
    vocabulary.
    """
    stripped = strip_song_text(text)
    check_song_length(stripped)
    tokens = stripped.split(",")
    validate_song(tokens)
    return Song(tokens=tuple(tokens), tone_duration_ms=int(tone_duration_ms), name=name)


def decode_frequencies(frequencies: Sequence[int], *, strict: bool = False) -> List[Optional[str]]:
    """
    Frequencies -> tokens via reverse lookup.

    The first entry in table order wins. An unknown frequency leaves a None hole
    at its position; with strict=True it raises DecodeError instead.
    """
    out: List[Optional[str]] = []
    unknown: List[int] = []
    for freq in frequencies:
        match = None
        for name, hz in NOTE_TABLE.items():
            if hz == freq:
                match = name
                break
        if match is None:
            unknown.append(freq)
        out.append(match)

    if unknown:
        if strict:
            raise DecodeError(unknown)
        logger.warning("Decoded song has %d unmapped tone(s): %s", len(unknown), unknown)
    return out


def encode_tokens(tokens: Sequence[Optional[str]]) -> List[int]:
    """Tokens -> Hz. Unknown tokens and holes become 0 (silence)."""
    return [frequency_of(t) or 0 for t in tokens]


def format_song(tokens: Sequence[Optional[str]]) -> str:
    """Tokens -> textual form. Holes render as empty tokens."""
    return ",".join(t or "" for t in tokens)
