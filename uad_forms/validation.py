"""Check field values against their validators, honouring effective state."""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional

from uad_forms.fields import FieldValue, TextValue, Validator
from uad_forms.rule_engine import EffectiveState, Resolution
from uad_forms.schema import Field, Form

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _message(validator: Validator, fallback: str) -> str:
    """Prefer the message configured on ``validator``."""

    return validator.message or fallback


def _check_text(item: Field, value: TextValue, validator: Validator) -> Optional[str]:
    """Return the error for one text validator, or ``None`` when it passes."""

    text = value.text
    if not text:
        return None
    if validator.kind == "min_length" and len(text) < int(validator.value or 0):
        return _message(validator, f"{item.label or item.id} must be at least {validator.value} characters")
    if validator.kind == "max_length" and validator.value is not None and len(text) > int(validator.value):
        return _message(validator, f"{item.label or item.id} must be at most {validator.value} characters")
    if validator.kind == "pattern" and validator.value and re.fullmatch(str(validator.value), text) is None:
        return _message(validator, f"{item.label or item.id} has an invalid format")
    if validator.kind == "email" and not EMAIL_PATTERN.match(text):
        return _message(validator, f"{item.label or item.id} must be a valid email address")
    return None


def validate_field(item: Field, value: FieldValue, state: EffectiveState) -> List[str]:
    """Return the validation messages for one field."""

    if state in {EffectiveState.HIDDEN, EffectiveState.VISIBLE_DISABLED}:
        return []

    errors: List[str] = []
    if state is EffectiveState.VISIBLE_REQUIRED and value.is_empty():
        required = next((v for v in item.validators if v.kind == "required"), None)
        fallback = f"{item.label or item.id} is required"
        errors.append(required.message if required and required.message else fallback)

    if item.type == "email" and isinstance(value, TextValue) and value.text:
        if not any(v.kind == "email" for v in item.validators):
            error = _check_text(item, value, Validator("email"))
            if error:
                errors.append(error)

    if isinstance(value, TextValue):
        for validator in item.validators:
            error = _check_text(item, value, validator)
            if error:
                errors.append(error)
    return errors


def validate_values(
    form: Form,
    resolution: Resolution,
    values: Optional[Mapping[str, FieldValue]] = None,
) -> Dict[str, List[str]]:
    """Return ``field_id -> messages`` for every visible, enabled field that fails.

    Hidden fields are skipped regardless of their stored value.
    """

    overrides = values or {}
    errors: Dict[str, List[str]] = {}
    for item in form.iter_fields():
        state = resolution.states.get(item.id, EffectiveState.VISIBLE_ENABLED)
        messages = validate_field(item, overrides.get(item.id, item.value), state)
        if messages:
            errors[item.id] = messages
    return errors


__all__ = ["EMAIL_PATTERN", "validate_field", "validate_values"]
