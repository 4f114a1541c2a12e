"""Tests for converting forms to and from documents."""

from __future__ import annotations

import copy
import json

import pytest

from uad_forms.errors import OrphanRuleReference, SchemaValidationError
from uad_forms.fields import BoolValue, ChoiceValue, FieldOption, Validator
from uad_forms.serialization import dumps, form_from_dict, form_to_dict, loads
from uad_forms.session import EditingSession


def _sample_session() -> EditingSession:
    session = EditingSession.new("Appraisal")
    editor = session.editor
    page = session.form.pages[0]
    subject = editor.add_section(page.id, "Subject")
    occupancy = editor.add_field(subject.id, "radio", "half", "Occupancy")
    editor.update_field(
        occupancy.id,
        options=[FieldOption("owner", "Owner"), FieldOption("tenant", "Tenant")],
    )
    tenant = editor.add_field(subject.id, "text", "half", "Tenant name")
    editor.update_field(tenant.id, validators=[Validator("required"), Validator("min_length", 2, "Too short")])
    contact = editor.add_field(subject.id, "email", "third", "Contact")
    second = editor.add_page("Site")
    site = editor.add_section(second.id, "Site")
    flood = editor.add_field(site.id, "checkbox", "quarter", "Flood zone")
    notes = editor.add_field(site.id, "textarea", "three_quarters", "Flood notes")

    editor.set_field_value(occupancy.id, "tenant")
    editor.set_field_value(flood.id, True)
    editor.add_rule(occupancy.id, "equals", "tenant", tenant.id, "show")
    editor.add_rule(flood.id, "equals", True, notes.id, "require")
    editor.add_rule(tenant.id, "is_not_empty", None, contact.id, "require")
    return session


def test_round_trip_preserves_form() -> None:
    """Loading a saved document rebuilds an equal form."""

    form = _sample_session().form

    restored = form_from_dict(form_to_dict(form))

    assert restored == form
    assert [page.title for page in restored.pages] == ["Page 1", "Site"]
    assert restored.get_field(restored.pages[0].sections[0].fields[0].id).value == ChoiceValue("tenant")


def test_json_round_trip() -> None:
    form = _sample_session().form

    text = dumps(form)

    assert json.loads(text)["schema_version"] == 1
    assert loads(text) == form


def test_document_lists_rules_and_refs() -> None:
    document = form_to_dict(_sample_session().form)
    fields = [item for page in document["pages"] for section in page["sections"] for item in section["fields"]]

    assert [rule["id"] for rule in document["rules"]] == ["rule_00001", "rule_00002", "rule_00003"]
    assert [item["rule_refs"] for item in fields] == [[], ["rule_00001"], ["rule_00003"], [], ["rule_00002"]]


def test_every_structural_problem_is_reported() -> None:
    """All problems are collected before loading fails."""

    document = form_to_dict(_sample_session().form)
    fields = document["pages"][0]["sections"][0]["fields"]
    fields[0]["type"] = "signature"
    fields[1]["width"] = "double"
    fields[2]["id"] = fields[1]["id"]

    with pytest.raises(SchemaValidationError) as excinfo:
        form_from_dict(document)

    messages = excinfo.value.errors
    assert len(messages) == 3
    assert "unsupported field type 'signature'" in messages[0]
    assert "unsupported width 'double'" in messages[1]
    assert "duplicate id" in messages[2]


@pytest.mark.parametrize(
    "rule_update,message",
    [
        ({"effect": "explode"}, "Unsupported effect"),
        ({"condition": {"operator": "between"}}, "Unsupported operator"),
        ({"id": ""}, "missing id"),
    ],
)
def test_invalid_rules_are_rejected(rule_update, message) -> None:
    document = form_to_dict(_sample_session().form)
    document["rules"][0].update(rule_update)

    with pytest.raises(SchemaValidationError) as excinfo:
        form_from_dict(document)

    assert message in str(excinfo.value)


def test_rule_naming_missing_field_is_orphan() -> None:
    document = form_to_dict(_sample_session().form)
    document["rules"][0]["source_field_id"] = "field_gone"

    with pytest.raises(OrphanRuleReference) as excinfo:
        form_from_dict(document)

    assert excinfo.value.rule_id == "rule_00001"
    assert excinfo.value.field_id == "field_gone"


def test_stale_rule_refs_are_rejected() -> None:
    document = form_to_dict(_sample_session().form)
    document["pages"][0]["sections"][0]["fields"][1]["rule_refs"] = []

    with pytest.raises(SchemaValidationError):
        form_from_dict(document)


def test_missing_rule_refs_are_rebuilt() -> None:
    """Documents without rule references get them from the rule table."""

    form = _sample_session().form
    document = copy.deepcopy(form_to_dict(form))
    for page in document["pages"]:
        for section in page["sections"]:
            for item in section["fields"]:
                del item["rule_refs"]

    assert form_from_dict(document) == form


def test_choice_value_must_be_an_option() -> None:
    document = form_to_dict(_sample_session().form)
    document["pages"][0]["sections"][0]["fields"][0]["value"] = "landlord"

    with pytest.raises(SchemaValidationError) as excinfo:
        form_from_dict(document)

    assert "Unknown option 'landlord'" in str(excinfo.value)


def test_non_object_document() -> None:
    with pytest.raises(SchemaValidationError):
        form_from_dict(["not", "a", "form"])


@pytest.mark.parametrize(
    "validator,message",
    [
        ({"kind": "pattern", "value": "("}, "Invalid pattern"),
        ({"kind": "min_length", "value": "three"}, "min_length expects a non-negative whole number"),
        ({"kind": "max_length", "value": -2}, "max_length expects a non-negative whole number"),
    ],
)
def test_unusable_validator_values_are_reported(validator, message) -> None:
    """Validator values that could not be applied are load errors."""

    document = form_to_dict(_sample_session().form)
    document["pages"][0]["sections"][0]["fields"][1]["validators"].append(validator)

    with pytest.raises(SchemaValidationError) as excinfo:
        form_from_dict(document)

    assert len(excinfo.value.errors) == 1
    assert message in excinfo.value.errors[0]


def test_missing_checkbox_value_loads_unchecked() -> None:
    """A checkbox stored without a value starts unchecked, like empty text."""

    form = _sample_session().form
    document = form_to_dict(form)
    flood = document["pages"][1]["sections"][0]["fields"][0]
    assert flood["type"] == "checkbox"
    del flood["value"]

    restored = form_from_dict(document)

    assert restored.get_field(flood["id"]).value == BoolValue(False)
