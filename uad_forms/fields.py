"""Closed field vocabularies and the value variants carried by each field type."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Type, Union

from uad_forms.errors import InvalidType, InvalidValue, InvalidWidth

FIELD_TYPES: Tuple[str, ...] = ("text", "textarea", "email", "select", "checkbox", "radio")
FIELD_TYPE_LABELS = {
    "text": "Short text",
    "textarea": "Long text",
    "email": "Email address",
    "select": "Dropdown",
    "checkbox": "Checkbox",
    "radio": "Radio buttons",
}
CHOICE_TYPES = frozenset({"select", "radio"})

GRID_COLUMNS = 12

# width -> (label, percentage of the row, grid column span)
FIELD_WIDTHS: Dict[str, Tuple[str, float, int]] = {
    "quarter": ("1/4 Width", 25.0, 3),
    "third": ("1/3 Width", 33.33, 4),
    "half": ("1/2 Width", 50.0, 6),
    "two_thirds": ("2/3 Width", 66.67, 8),
    "three_quarters": ("3/4 Width", 75.0, 9),
    "full": ("Full Width", 100.0, 12),
}
DEFAULT_WIDTH = "full"

VALIDATOR_KINDS: Tuple[str, ...] = ("required", "min_length", "max_length", "pattern", "email")


@dataclass(frozen=True)
class TextValue:
    """Free text captured by ``text``, ``textarea`` and ``email`` fields."""

    text: str = ""

    @property
    def raw(self) -> str:
        return self.text

    def is_empty(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class ChoiceValue:
    """The selected option identifier of a ``select`` or ``radio`` field."""

    option_id: Optional[str] = None

    @property
    def raw(self) -> Optional[str]:
        return self.option_id

    def is_empty(self) -> bool:
        return self.option_id is None


@dataclass(frozen=True)
class BoolValue:
    """The checked state of a ``checkbox`` field."""

    checked: bool = False

    @property
    def raw(self) -> bool:
        return self.checked

    def is_empty(self) -> bool:
        return not self.checked


FieldValue = Union[TextValue, ChoiceValue, BoolValue]

VALUE_TYPES: Dict[str, Type[Any]] = {
    "text": TextValue,
    "textarea": TextValue,
    "email": TextValue,
    "select": ChoiceValue,
    "radio": ChoiceValue,
    "checkbox": BoolValue,
}


@dataclass(frozen=True)
class FieldOption:
    """A selectable choice offered by ``select`` and ``radio`` fields."""

    id: str
    label: str


@dataclass(frozen=True)
class Validator:
    """A declarative check applied to a field's value."""

    kind: str
    value: Any = None
    message: str = ""


def ensure_field_type(field_type: Any) -> str:
    """Return ``field_type`` if it belongs to :data:`FIELD_TYPES`."""

    if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
        raise InvalidType(
            f"Unsupported field type {field_type!r}; expected one of {', '.join(FIELD_TYPES)}"
        )
    return field_type


def ensure_width(width: Any) -> str:
    """Return ``width`` if it belongs to :data:`FIELD_WIDTHS`."""

    if not isinstance(width, str) or width not in FIELD_WIDTHS:
        raise InvalidWidth(
            f"Unsupported field width {width!r}; expected one of {', '.join(FIELD_WIDTHS)}"
        )
    return width


def column_span(width: str) -> int:
    """Return the number of grid columns occupied by ``width``."""

    return FIELD_WIDTHS[ensure_width(width)][2]


def width_percentage(width: str) -> float:
    """Return the share of the row taken by ``width``, in percent."""

    return FIELD_WIDTHS[ensure_width(width)][1]


def width_label(width: str) -> str:
    """Return the human-readable name of ``width``."""

    return FIELD_WIDTHS[ensure_width(width)][0]


def ensure_validator(validator: Validator) -> Validator:
    """Return ``validator`` if its kind is known and its value usable.

    Length limits must be non-negative integers and patterns must compile.
    """

    if validator.kind not in VALIDATOR_KINDS:
        raise InvalidValue(f"Unsupported validator {validator.kind!r}")
    if validator.kind in {"min_length", "max_length"}:
        value = validator.value
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidValue(f"{validator.kind} expects a non-negative whole number, got {value!r}")
    elif validator.kind == "pattern":
        if not isinstance(validator.value, str):
            raise InvalidValue(f"pattern expects a regular expression, got {validator.value!r}")
        try:
            re.compile(validator.value)
        except re.error as exc:
            raise InvalidValue(f"Invalid pattern {validator.value!r}: {exc}") from None
    return validator


def default_value(field_type: str) -> FieldValue:
    """Return the empty value for ``field_type``."""

    return VALUE_TYPES[ensure_field_type(field_type)]()


def coerce_value(
    field_type: str,
    raw: Any,
    options: Sequence[FieldOption] = (),
) -> FieldValue:
    """Wrap ``raw`` in the value variant matching ``field_type``.

    Values that already are the right variant are returned unchanged. Choice
    values must name one of ``options`` when options are configured.
    """

    value_type = VALUE_TYPES[ensure_field_type(field_type)]
    if isinstance(raw, value_type):
        candidate = raw
    elif value_type is TextValue:
        if raw is None:
            raw = ""
        if not isinstance(raw, str):
            raise InvalidValue(f"A {field_type} field expects text, got {type(raw).__name__}")
        candidate = TextValue(raw)
    elif value_type is ChoiceValue:
        if raw is not None and not isinstance(raw, str):
            raise InvalidValue(f"A {field_type} field expects an option id, got {raw!r}")
        candidate = ChoiceValue(raw or None)
    else:
        if raw is None:
            raw = False
        if not isinstance(raw, bool):
            raise InvalidValue(f"A checkbox field expects a boolean, got {raw!r}")
        candidate = BoolValue(raw)

    if isinstance(candidate, ChoiceValue) and candidate.option_id is not None and options:
        if candidate.option_id not in {option.id for option in options}:
            raise InvalidValue(f"Unknown option {candidate.option_id!r}")
    return candidate


__all__ = [
    "BoolValue",
    "CHOICE_TYPES",
    "ChoiceValue",
    "DEFAULT_WIDTH",
    "FIELD_TYPES",
    "FIELD_TYPE_LABELS",
    "FIELD_WIDTHS",
    "FieldOption",
    "FieldValue",
    "GRID_COLUMNS",
    "TextValue",
    "VALIDATOR_KINDS",
    "VALUE_TYPES",
    "Validator",
    "coerce_value",
    "column_span",
    "default_value",
    "ensure_field_type",
    "ensure_validator",
    "ensure_width",
    "width_label",
    "width_percentage",
]
