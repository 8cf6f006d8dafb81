# core/validation.py
"""
Whole-record validation for the add-ons form.

Every field is checked on its own and reports its own error; one bad field
never hides another. Pins go through core.pins (shared pool), the custom song
through core.notes, everything else through plain bounds or option sets.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from core.errors import ChoiceError, FieldError, RangeError, VocabularyError
from core.models import FieldIssue, ValidationReport
from core.notes import check_song_length, normalize, strip_song_text, validate_song
from core.pins import PIN_FIELDS, validate_pin_fields

SONG_FIELD = "buzzerCustomIntroSong"
INTRO_FIELD = "buzzerIntroSong"
CUSTOM_SONG_INDEX = 0
INTRO_OFF = -1

# field -> (label, min, max); None = unbounded on that side
NUMERIC_FIELDS: Dict[str, Tuple[str, Optional[int], Optional[int]]] = {
    "turboShotCount": ("Turbo Shot Count", 5, 30),
    "i2cAnalog1219Speed": ("I2C Analog1219 Speed", 100000, None),
    "i2cAnalog1219Address": ("I2C Analog1219 Address", 0x00, 0x7F),
    "buzzerEnabled": ("Enabled?", 0, 1),
    "buzzerVolume": ("Buzzer Volume", 0, 100),
    INTRO_FIELD: ("Buzzer Intro Song", INTRO_OFF, None),
    "buzzerCustomIntroSongToneDuration": ("Custom Intro Song Tone Duration", 0, 1000),
}

I2C_BLOCKS = {0: "i2c0", 1: "i2c1"}
ON_BOARD_LED_MODES = {0: "Off", 1: "Mode Indicator", 2: "Input Test"}
REVERSE_ACTIONS = {0: "Disable", 1: "Enable", 2: "Neutral"}
DUAL_STICK_MODES = {0: "D-Pad", 1: "Left Analog", 2: "Right Analog"}
DUAL_COMBINE_MODES = {0: "Mixed", 1: "Gamepad", 2: "Dual Directional", 3: "None"}

# field -> (label, options)
CHOICE_FIELDS: Dict[str, Tuple[str, Dict[int, str]]] = {
    "i2cAnalog1219Block": ("I2C Analog1219 Block", I2C_BLOCKS),
    "onBoardLedMode": ("On-Board LED Mode", ON_BOARD_LED_MODES),
    "reverseActionUp": ("Reverse Up", REVERSE_ACTIONS),
    "reverseActionDown": ("Reverse Down", REVERSE_ACTIONS),
    "reverseActionLeft": ("Reverse Left", REVERSE_ACTIONS),
    "reverseActionRight": ("Reverse Right", REVERSE_ACTIONS),
    "dualDirDpadMode": ("Dual Stick Mode", DUAL_STICK_MODES),
    "dualDirCombineMode": ("Dual Combination Mode", DUAL_COMBINE_MODES),
}

SONG_LABEL = "Custom Intro Song Tones"

FIELD_LABELS: Dict[str, str] = {
    **PIN_FIELDS,
    **{k: v[0] for k, v in NUMERIC_FIELDS.items()},
    **{k: v[0] for k, v in CHOICE_FIELDS.items()},
    SONG_FIELD: SONG_LABEL,
}


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def coerce_field(name: str, raw: Any) -> Any:
    """
    Coerce a raw form value the way the page does before validating.

    Integers come in as text from inputs/selects; the address also accepts hex
    ("0x40"); the song is stored without whitespace and upper-cased. Values
    that cannot be coerced are returned unchanged so validation reports them.
    """
    if name == SONG_FIELD:
        return strip_song_text(raw) if isinstance(raw, str) else raw

    if _is_int(raw):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        base = 10
        if name == "i2cAnalog1219Address" and text.lower().startswith("0x"):
            base = 16
        try:
            return int(text, base)
        except ValueError:
            return raw
    return raw


def check_bounds(name: str, value: Any, *, maximum: Optional[int] = None) -> None:
    label, lo, hi = NUMERIC_FIELDS[name]
    if maximum is not None:
        hi = maximum
    if not _is_int(value):
        raise RangeError(value, field=name, label=label, message=f"{label} must be a number")
    if (lo is not None and value < lo) or (hi is not None and value > hi):
        raise RangeError(value, minimum=lo, maximum=hi, field=name, label=label)


def check_choice(name: str, value: Any) -> None:
    label, options = CHOICE_FIELDS[name]
    if not _is_int(value) or value not in options:
        raise ChoiceError(value, sorted(options), field=name, label=label)


def check_custom_song(text: Any, intro_selection: Any = CUSTOM_SONG_INDEX) -> None:
    """
    Length first, then vocabulary.

    An empty song only passes while the custom song is not the selected intro.
    """
    if not isinstance(text, str):
        raise RangeError(text, field=SONG_FIELD, label=SONG_LABEL, message=f"{SONG_LABEL} must be text")
    if text == "" and intro_selection != CUSTOM_SONG_INDEX:
        return
    try:
        check_song_length(text)
    except RangeError as e:
        e.field, e.label = SONG_FIELD, SONG_LABEL
        raise
    try:
        validate_song(normalize(text))
    except VocabularyError as e:
        e.field, e.label = SONG_FIELD, SONG_LABEL
        raise


def validate_field(
    name: str,
    values: Mapping[str, Any],
    baseline: Iterable[int] = (),
    *,
    catalog_size: Optional[int] = None,
) -> Optional[FieldError]:
    """Error for one field, or None. Pins are judged against the other fields' current values."""
    if name in PIN_FIELDS:
        return validate_pin_fields(values, baseline).get(name)

    value = values.get(name)
    try:
        if name == INTRO_FIELD:
            check_bounds(name, value, maximum=catalog_size)
        elif name in NUMERIC_FIELDS:
            check_bounds(name, value)
        elif name in CHOICE_FIELDS:
            check_choice(name, value)
        elif name == SONG_FIELD:
            check_custom_song(value, values.get(INTRO_FIELD, INTRO_OFF))
    except FieldError as e:
        return e
    return None


def collect_errors(
    values: Mapping[str, Any],
    baseline: Iterable[int] = (),
    *,
    catalog_size: Optional[int] = None,
) -> Dict[str, FieldError]:
    """field -> error for every failing field present in `values`."""
    base = list(baseline)
    errors: Dict[str, FieldError] = dict(validate_pin_fields(values, base))
    for name in values:
        if name in PIN_FIELDS:
            continue
        err = validate_field(name, values, base, catalog_size=catalog_size)
        if err is not None:
            errors[name] = err
    return errors


def to_issue(err: FieldError) -> FieldIssue:
    return FieldIssue(
        kind=err.kind,
        message=err.message,
        label=err.label,
        value=getattr(err, "value", getattr(err, "pin", None)),
        tokens=err.tokens if isinstance(err, VocabularyError) else None,
    )


def validate_config(
    values: Mapping[str, Any],
    baseline: Iterable[int] = (),
    *,
    catalog_size: Optional[int] = None,
) -> ValidationReport:
    errors = collect_errors(values, baseline, catalog_size=catalog_size)
    return ValidationReport(ok=not errors, errors={k: to_issue(v) for k, v in errors.items()})
