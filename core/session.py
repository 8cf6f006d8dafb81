# core/session.py
"""
One editing session of the add-ons form.

Holds the values being edited, the device's used-pin snapshot and the song
catalogue, all captured when the session is loaded. Every edit re-runs the
whole validation pass, since a pin entered in one field changes what is
"used" for all of its siblings.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

from core.errors import FieldError, RangeError
from core.models import (
    AddonsConfig,
    AddonsOptions,
    CatalogSong,
    PlaybackStatus,
    SaveResponse,
    SessionView,
    SongOption,
    ValidationReport,
)
from core.notes import SONG_LENGTH_LIMIT, Song, check_song_length, decode_frequencies, normalize
from core.sequencer import ToneSequencer
from core.validation import (
    CUSTOM_SONG_INDEX,
    FIELD_LABELS,
    INTRO_FIELD,
    INTRO_OFF,
    SONG_FIELD,
    coerce_field,
    collect_errors,
    to_issue,
)

logger = logging.getLogger(__name__)

SAVE_OK_MESSAGE = "Saved! Please Restart Your Device"
SAVE_FAILED_MESSAGE = "Unable to Save"

SaveFn = Callable[[Dict[str, Any]], bool]


class SaveBlocked(ValueError):
    """Raised by save() while any field is invalid."""

    def __init__(self, report: ValidationReport):
        super().__init__(f"{len(report.errors)} invalid field(s): {', '.join(sorted(report.errors))}")
        self.report = report


class EditingSession:
    def __init__(
        self,
        options: AddonsOptions,
        *,
        sequencer: ToneSequencer,
        save: Optional[SaveFn] = None,
    ) -> None:
        self.values: Dict[str, Any] = options.config.to_wire()
        # Snapshot: not refreshed while the session is open
        self.used_pins: FrozenSet[int] = frozenset(options.used_pins)
        self.catalog: List[CatalogSong] = list(options.catalog)
        self.sequencer = sequencer
        self._save = save

    # ----------------------------
    # Editing / validation
    # ----------------------------
    def set_field(self, name: str, raw: Any) -> Optional[FieldError]:
        """Apply one edit; returns that field's error (if any) after revalidation."""
        self._assign(name, raw)
        return self.errors.get(name)

    def set_fields(self, changes: Mapping[str, Any]) -> Dict[str, FieldError]:
        for name in changes:
            if name not in FIELD_LABELS:
                raise KeyError(f"Unknown field: {name}")
        for name, raw in changes.items():
            self._assign(name, raw)
        return self.errors

    def _assign(self, name: str, raw: Any) -> None:
        if name not in FIELD_LABELS:
            raise KeyError(f"Unknown field: {name}")
        self.values[name] = coerce_field(name, raw)

    @property
    def errors(self) -> Dict[str, FieldError]:
        return collect_errors(self.values, self.used_pins, catalog_size=len(self.catalog))

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def report(self) -> ValidationReport:
        errors = self.errors
        return ValidationReport(ok=not errors, errors={k: to_issue(v) for k, v in errors.items()})

    # ----------------------------
    # Songs / playback
    # ----------------------------
    def song_options(self) -> List[SongOption]:
        opts = [SongOption(index=INTRO_OFF, name="OFF"), SongOption(index=CUSTOM_SONG_INDEX, name="CUSTOM")]
        for i, s in enumerate(self.catalog, start=1):
            opts.append(SongOption(index=i, name=f"{i} - {s.name}", tone_duration=s.tone_duration))
        return opts

    def song_for(self, selection: int) -> Optional[Song]:
        """
        Song for an intro selection: 0 is the custom text, 1.. the catalogue.

        The custom text is played as typed; tokens that fail validation play as
        silence. Text over the length cap gives no song.
        """
        if selection == CUSTOM_SONG_INDEX:
            text = self.values.get(SONG_FIELD) or ""
            duration = self.values.get("buzzerCustomIntroSongToneDuration")
            if not isinstance(text, str) or not isinstance(duration, int):
                return None
            try:
                check_song_length(text)
            except RangeError:
                logger.info("Custom song longer than %d characters, not played", SONG_LENGTH_LIMIT)
                return None
            return Song(tokens=tuple(normalize(text)), tone_duration_ms=duration, name="custom")

        if 1 <= selection <= len(self.catalog):
            entry = self.catalog[selection - 1]
            tokens = decode_frequencies(entry.tones)
            return Song(tokens=tuple(tokens), tone_duration_ms=entry.tone_duration, name=entry.name)

        return None

    def toggle_play(self, selection: Optional[int] = None) -> bool:
        """One button: stop if playing, otherwise play the selection (default: the intro field)."""
        if self.sequencer.is_playing:
            self.sequencer.stop()
            return False

        if selection is None:
            selection = self.values.get(INTRO_FIELD, INTRO_OFF)
        song = self.song_for(selection) if isinstance(selection, int) else None
        if song is None:
            logger.info("Nothing to play for selection %r", selection)
            return False

        self.sequencer.play(song)
        return True

    def stop(self) -> bool:
        return self.sequencer.stop()

    @property
    def is_playing(self) -> bool:
        return self.sequencer.is_playing

    def playback_status(self) -> PlaybackStatus:
        session = self.sequencer.session
        if session is None:
            return PlaybackStatus(playing=False, label="Play")
        return PlaybackStatus(
            playing=True,
            label="Stop",
            song=session.song.name,
            index=session.index,
            length=len(session.song),
        )

    # ----------------------------
    # Save / views
    # ----------------------------
    def to_config(self) -> AddonsConfig:
        return AddonsConfig.model_validate(self.values)

    def save(self) -> SaveResponse:
        report = self.report()
        if not report.ok:
            raise SaveBlocked(report)
        if self._save is None:
            raise RuntimeError("Session has no save target")

        ok = bool(self._save(self.to_config().to_wire()))
        if ok:
            logger.info("Add-ons options saved")
        else:
            logger.warning("Add-ons options save failed")
        return SaveResponse(ok=ok, message=SAVE_OK_MESSAGE if ok else SAVE_FAILED_MESSAGE)

    def view(self) -> SessionView:
        return SessionView(
            values=dict(self.values),
            errors=self.report().errors,
            used_pins=sorted(self.used_pins),
            songs=self.song_options(),
            playing=self.is_playing,
        )
