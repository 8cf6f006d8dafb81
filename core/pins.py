# core/pins.py
"""
GPIO pin allocation rules.

All pin fields of the add-ons record draw from one pool (GPIO 0..29). A field
set to -1 is unassigned and never conflicts. Everything else must be unique
across the form and must not collide with the pins the device reports as
already claimed by other subsystems ("usedPins").

The "used" set for a field is recomputed on every pass from the *current*
values of all sibling fields. Only the device baseline is a snapshot: it is
captured once when the editing session loads and is not refreshed while the
form is open, so a pin freed elsewhere on the device keeps reporting as a
conflict until the session is reloaded.
"""
from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Set

from core.errors import ConflictError, RangeError

UNASSIGNED = -1
PIN_MIN = -1
PIN_MAX = 29

# field name -> label shown next to the field
PIN_FIELDS: Dict[str, str] = {
    "turboPin": "Turbo Pin",
    "turboPinLED": "Turbo Pin LED",
    "sliderLSPin": "Slider LS Pin",
    "sliderRSPin": "Slider RS Pin",
    "reversePin": "Reverse Pin",
    "reversePinLED": "Reverse Pin LED",
    "i2cAnalog1219SDAPin": "I2C Analog1219 SDA Pin",
    "i2cAnalog1219SCLPin": "I2C Analog1219 SCL Pin",
    "dualDirUpPin": "Dual Directional Up Pin",
    "dualDirDownPin": "Dual Directional Down Pin",
    "dualDirLeftPin": "Dual Directional Left Pin",
    "dualDirRightPin": "Dual Directional Right Pin",
    "buzzerPin": "Buzzer Pin",
}


def is_pin_field(name: str) -> bool:
    return name in PIN_FIELDS


def validate_pin(
    candidate: int,
    used_pins: Iterable[int],
    *,
    field: Optional[str] = None,
    label: Optional[str] = None,
) -> None:
    """
    Raise RangeError / ConflictError when `candidate` may not be assigned.

    -1 is always legal. Range is checked before conflicts so that an
    out-of-range value is never reported as "already assigned".
    """
    if label is None and field is not None:
        label = PIN_FIELDS.get(field)

    if candidate == UNASSIGNED:
        return
    if candidate < PIN_MIN or candidate > PIN_MAX:
        raise RangeError(candidate, minimum=PIN_MIN, maximum=PIN_MAX, field=field, label=label)
    if candidate in set(used_pins):
        raise ConflictError(candidate, field=field, label=label)


def used_pins_for(field: str, values: Mapping[str, object], baseline: Iterable[int] = ()) -> Set[int]:
    """Pins claimed by everything except `field`: sibling pin fields plus the device baseline."""
    used = {int(p) for p in baseline if p != UNASSIGNED}
    for name in PIN_FIELDS:
        if name == field:
            continue
        v = values.get(name, UNASSIGNED)
        if isinstance(v, int) and not isinstance(v, bool) and v != UNASSIGNED:
            used.add(v)
    return used


def validate_pin_fields(values: Mapping[str, object], baseline: Iterable[int] = ()) -> Dict[str, RangeError | ConflictError]:
    """
    Validate every pin field present in `values` independently.

    Returns {field: error} for failing fields only. Two fields holding the same
    pin both fail, since each sees the other in its used set.
    """
    base = set(baseline)
    errors: Dict[str, RangeError | ConflictError] = {}
    for name, label in PIN_FIELDS.items():
        if name not in values:
            continue
        v = values[name]
        if not isinstance(v, int) or isinstance(v, bool):
            errors[name] = RangeError(v, field=name, label=label, message=f"{label} must be a number")
            continue
        try:
            validate_pin(v, used_pins_for(name, values, base), field=name, label=label)
        except (RangeError, ConflictError) as e:
            errors[name] = e
    return errors