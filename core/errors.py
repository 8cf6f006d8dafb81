# core/errors.py
"""
Field-scoped validation errors.

Every error names the field it belongs to and carries the message the form
shows next to that field. None of them is fatal: they block saving until the
user corrects the value.
"""
from __future__ import annotations

from typing import Optional, Sequence


class FieldError(ValueError):
    """Base class for a single field's validation failure."""

    kind = "invalid"

    def __init__(self, message: str, *, field: Optional[str] = None, label: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.label = label


class RangeError(FieldError):
    """Value outside the field's numeric bounds (or not a number at all)."""

    kind = "range"

    def __init__(
        self,
        value: object,
        *,
        minimum: Optional[int] = None,
        maximum: Optional[int] = None,
        field: Optional[str] = None,
        label: Optional[str] = None,
        message: Optional[str] = None,
    ):
        name = label or field or "value"
        if message is None:
            if minimum is not None and maximum is not None:
                message = f"{name} must be between {minimum} and {maximum}"
            elif minimum is not None:
                message = f"{name} must be greater than or equal to {minimum}"
            elif maximum is not None:
                message = f"{name} must be less than or equal to {maximum}"
            else:
                message = f"{name} is out of range"
        super().__init__(message, field=field, label=label)
        self.value = value
        self.minimum = minimum
        self.maximum = maximum


class ChoiceError(RangeError):
    """Mode field set to a value outside its fixed option set."""

    kind = "choice"

    def __init__(self, value: object, choices: Sequence[int], *, field: Optional[str] = None, label: Optional[str] = None):
        name = label or field or "value"
        allowed = ", ".join(str(c) for c in choices)
        super().__init__(
            value,
            field=field,
            label=label,
            message=f"{name} must be one of the following values: {allowed}",
        )
        self.choices = tuple(choices)


class ConflictError(FieldError):
    """Pin already claimed by another field or by the device."""

    kind = "conflict"

    def __init__(self, pin: int, *, field: Optional[str] = None, label: Optional[str] = None):
        super().__init__(f"{pin} is already assigned!", field=field, label=label)
        self.pin = pin


class VocabularyError(FieldError):
    """One or more song tokens are missing from the note table."""

    kind = "vocabulary"

    def __init__(self, tokens: Sequence[str], *, field: Optional[str] = None, label: Optional[str] = None):
        self.tokens = list(tokens)
        super().__init__(f"Notes '{', '.join(self.tokens)}' invalid.", field=field, label=label)


class DecodeError(ValueError):
    """Strict frequency decode hit frequencies with no note name."""

    def __init__(self, frequencies: Sequence[int]):
        self.frequencies = list(frequencies)
        super().__init__(f"No note for frequencies: {', '.join(str(f) for f in self.frequencies)}")
