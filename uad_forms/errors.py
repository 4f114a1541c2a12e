"""Exception types raised by the form schema and rule engine."""

from __future__ import annotations

from typing import Iterable, List, Sequence


class FormSchemaError(Exception):
    """Base class for recoverable errors raised while editing a form."""


class NotFound(FormSchemaError, LookupError):
    """Raised when an identifier is absent from the form tree."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class InvalidType(FormSchemaError, ValueError):
    """Raised when a field type is outside the supported vocabulary."""


class InvalidWidth(FormSchemaError, ValueError):
    """Raised when a field width is outside the supported vocabulary."""


class InvalidValue(FormSchemaError, ValueError):
    """Raised when a raw value cannot be stored in a field of a given type."""


class InvalidRule(FormSchemaError, ValueError):
    """Raised when a rule uses an unknown operator or effect."""


class CyclicRuleGraph(FormSchemaError):
    """Raised when rule dependencies form a cycle."""

    def __init__(self, field_ids: Iterable[str]) -> None:
        self.field_ids: List[str] = list(field_ids)
        super().__init__(
            "Rule dependencies form a cycle between: " + ", ".join(self.field_ids)
        )


class OrphanRuleReference(FormSchemaError):
    """Raised when a rule references a field that does not exist."""

    def __init__(self, rule_id: str, field_id: str) -> None:
        super().__init__(f"Rule '{rule_id}' references missing field '{field_id}'")
        self.rule_id = rule_id
        self.field_id = field_id


class SchemaValidationError(FormSchemaError, ValueError):
    """Raised when a serialized form fails structural validation.

    ``errors`` holds every problem found, so callers can surface all of them
    at once instead of one per attempt.
    """

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid form document")
