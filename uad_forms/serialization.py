"""Convert forms to and from JSON-shaped documents."""

from __future__ import annotations

import json
from dataclasses import replace
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Set

from uad_forms.errors import FormSchemaError, OrphanRuleReference, SchemaValidationError
from uad_forms.fields import (
    FIELD_TYPES,
    FIELD_WIDTHS,
    VALIDATOR_KINDS,
    FieldOption,
    FieldValue,
    Validator,
    coerce_value,
    ensure_validator,
)
from uad_forms.rules import Condition, Rule, RuleGraph, check_rule_parts
from uad_forms.schema import Field, Form, Page, Section

SCHEMA_VERSION = 1


def _ensure_mapping(value: Any) -> Dict[str, Any]:
    """Return ``value`` if it is a mapping, otherwise an empty dict."""

    return dict(value) if isinstance(value, Mapping) else {}


def _ensure_list(value: Any) -> List[Any]:
    """Return ``value`` if it is a list, otherwise an empty list."""

    return list(value) if isinstance(value, list) else []


def _value_to_raw(value: FieldValue) -> Any:
    """Return the JSON-compatible form of ``value``."""

    return value.raw


def field_to_dict(item: Field) -> Dict[str, Any]:
    """Return one field, value and rule references included, as a dict."""

    return {
        "id": item.id,
        "type": item.type,
        "label": item.label,
        "width": item.width,
        "value": _value_to_raw(item.value),
        "validators": [
            {"kind": v.kind, "value": v.value, "message": v.message} for v in item.validators
        ],
        "options": [{"id": option.id, "label": option.label} for option in item.options],
        "rule_refs": sorted(item.rule_refs),
    }


def rule_to_dict(rule: Rule) -> Dict[str, Any]:
    """Return one rule as a dict."""

    return {
        "id": rule.id,
        "source_field_id": rule.source_field_id,
        "condition": {"operator": rule.condition.operator, "value": rule.condition.value},
        "target_field_id": rule.target_field_id,
        "effect": rule.effect,
    }


def form_to_dict(form: Form) -> Dict[str, Any]:
    """Return the whole tree, rules included, as a JSON-compatible dict."""

    return {
        "schema_version": SCHEMA_VERSION,
        "id": form.id,
        "title": form.title,
        "pages": [
            {
                "id": page.id,
                "title": page.title,
                "sections": [
                    {
                        "id": section.id,
                        "title": section.title,
                        "fields": [field_to_dict(item) for item in section.fields],
                    }
                    for section in page.sections
                ],
            }
            for page in form.pages
        ],
        "rules": [rule_to_dict(rule) for rule in form.rules],
    }


class _Loader:
    """Collect every problem in a document before giving up."""

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.seen_ids: Set[str] = set()
        self.derived_refs: Set[str] = set()

    def _identifier(self, payload: Mapping[str, Any], where: str) -> str:
        identifier = payload.get("id")
        if not isinstance(identifier, str) or not identifier.strip():
            self.errors.append(f"{where}: missing id")
            return ""
        if identifier in self.seen_ids:
            self.errors.append(f"{where}: duplicate id '{identifier}'")
        self.seen_ids.add(identifier)
        return identifier

    def field(self, payload: Any, where: str) -> Field:
        data = _ensure_mapping(payload)
        identifier = self._identifier(data, where)
        if "rule_refs" not in data:
            self.derived_refs.add(identifier)
        field_type = data.get("type")
        width = data.get("width", "full")
        if field_type not in FIELD_TYPES:
            self.errors.append(f"{where}: unsupported field type {field_type!r}")
            field_type = "text"
        if width not in FIELD_WIDTHS:
            self.errors.append(f"{where}: unsupported width {width!r}")
            width = "full"

        options = tuple(
            FieldOption(str(option.get("id", "")), str(option.get("label", "")))
            for option in map(_ensure_mapping, _ensure_list(data.get("options")))
        )
        validators = []
        for raw_validator in map(_ensure_mapping, _ensure_list(data.get("validators"))):
            kind = raw_validator.get("kind")
            if kind not in VALIDATOR_KINDS:
                self.errors.append(f"{where}: unsupported validator {kind!r}")
                continue
            validator = Validator(kind, raw_validator.get("value"), str(raw_validator.get("message") or ""))
            try:
                validators.append(ensure_validator(validator))
            except FormSchemaError as exc:
                self.errors.append(f"{where}: {exc}")

        value: Optional[FieldValue] = None
        try:
            value = coerce_value(field_type, data.get("value"), options)
        except FormSchemaError as exc:
            self.errors.append(f"{where}: {exc}")

        return Field(
            id=identifier,
            type=field_type,
            label=str(data.get("label") or ""),
            width=width,
            value=value,
            validators=tuple(validators),
            options=options,
            rule_refs=frozenset(str(ref) for ref in _ensure_list(data.get("rule_refs"))),
        )

    def rule(self, payload: Any, where: str) -> Rule | None:
        data = _ensure_mapping(payload)
        identifier = data.get("id")
        if not isinstance(identifier, str) or not identifier:
            self.errors.append(f"{where}: missing id")
            return None
        condition = _ensure_mapping(data.get("condition"))
        operator = condition.get("operator", "equals")
        effect = data.get("effect")
        try:
            check_rule_parts(operator, effect)
        except FormSchemaError as exc:
            self.errors.append(f"{where}: {exc}")
            return None
        return Rule(
            identifier,
            str(data.get("source_field_id") or ""),
            Condition(operator, condition.get("value")),
            str(data.get("target_field_id") or ""),
            effect,
        )


def form_from_dict(payload: Mapping[str, Any]) -> Form:
    """Build a :class:`Form` from ``payload``.

    Raises :class:`SchemaValidationError` listing every structural problem and
    :class:`OrphanRuleReference` for rules that name missing fields. Stored
    ``rule_refs`` must agree with the rule table; fields stored without them
    have them rebuilt from the rules. Rule cycles are accepted here
    and reported when the rules are evaluated.
    """

    if not isinstance(payload, Mapping):
        raise SchemaValidationError(["Form document must be an object"])

    loader = _Loader()
    form_id = loader._identifier(payload, "Form")
    pages: List[Page] = []
    for page_number, raw_page in enumerate(_ensure_list(payload.get("pages")), start=1):
        page_data = _ensure_mapping(raw_page)
        where = f"Page {page_number}"
        page = Page(loader._identifier(page_data, where), str(page_data.get("title") or ""))
        for section_number, raw_section in enumerate(_ensure_list(page_data.get("sections")), start=1):
            section_data = _ensure_mapping(raw_section)
            section_where = f"{where}, Section {section_number}"
            section = Section(loader._identifier(section_data, section_where), str(section_data.get("title") or ""))
            for field_number, raw_field in enumerate(_ensure_list(section_data.get("fields")), start=1):
                item = loader.field(raw_field, f"{section_where}, Field {field_number}")
                section._insert_field(len(section.fields), item)
            page._insert_section(len(page.sections), section)
        pages.append(page)

    graph = RuleGraph()
    for rule_number, raw_rule in enumerate(_ensure_list(payload.get("rules")), start=1):
        rule = loader.rule(raw_rule, f"Rule {rule_number}")
        if rule is None:
            continue
        if rule.id in graph:
            loader.errors.append(f"Rule {rule_number}: duplicate id '{rule.id}'")
            continue
        graph.add(rule)

    if loader.errors:
        raise SchemaValidationError(loader.errors)

    form = Form(form_id, str(payload.get("title") or ""), pages, graph)
    for section in form.iter_sections():
        for index, item in enumerate(section.fields):
            if item.id in loader.derived_refs:
                refs = frozenset(rule.id for rule in graph.rules_targeting(item.id))
                section._replace_field(index, replace(item, rule_refs=refs))
    check_integrity(form)
    return form


def check_integrity(form: Form) -> None:
    """Verify that rules and ``rule_refs`` agree with each other and the tree."""

    known = set(form.field_ids())
    for rule in form.rules:
        for field_id in (rule.source_field_id, rule.target_field_id):
            if field_id not in known:
                raise OrphanRuleReference(rule.id, field_id)

    mismatches = []
    for item in form.iter_fields():
        expected = {rule.id for rule in form.rules.rules_targeting(item.id)}
        if set(item.rule_refs) != expected:
            mismatches.append(
                f"Field '{item.id}': rule_refs {sorted(item.rule_refs)} do not match rules {sorted(expected)}"
            )
    if mismatches:
        raise SchemaValidationError(mismatches)


def dumps(form: Form, *, indent: int | None = 2) -> str:
    """Serialize ``form`` to a JSON string."""

    return json.dumps(form_to_dict(form), indent=indent)


def loads(text: str) -> Form:
    """Parse a JSON string produced by :func:`dumps`."""

    return form_from_dict(json.loads(text))


__all__ = [
    "SCHEMA_VERSION",
    "check_integrity",
    "dumps",
    "field_to_dict",
    "form_from_dict",
    "form_to_dict",
    "loads",
    "rule_to_dict",
]
