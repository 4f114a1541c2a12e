"""Tests for the pure helpers used by the Streamlit pages."""

from __future__ import annotations

import importlib.util
from pathlib import Path
import sys
from types import ModuleType

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import Home  # noqa: E402
from uad_forms.errors import SchemaValidationError  # noqa: E402
from uad_forms.fields import FieldOption, Validator  # noqa: E402
from uad_forms.form_store import LocalFormStore  # noqa: E402
from uad_forms.schema import Field  # noqa: E402
from uad_forms.serialization import dumps  # noqa: E402
from uad_forms.session import EditingSession  # noqa: E402


def _load_page(filename: str, name: str) -> ModuleType:
    """Import a page script from ``pages/`` without running it."""

    module_spec = importlib.util.spec_from_file_location(name, REPO_ROOT / "pages" / filename)
    if module_spec is None or module_spec.loader is None:  # pragma: no cover
        raise RuntimeError(f"Could not load {filename} for testing.")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


BUILDER = _load_page("01_Form_Builder.py", "builder_page")
PREVIEW = _load_page("02_Preview.py", "preview_page")


def test_parse_options_accepts_ids_and_plain_labels():
    """Lines may name an id explicitly; otherwise one is derived from the label."""

    options = BUILDER.parse_options("owner | Owner occupied\n\nTenant\n  Tenant  \n| Vacant")

    assert options == [
        FieldOption("owner", "Owner occupied"),
        FieldOption("tenant", "Tenant"),
        FieldOption("tenant_2", "Tenant"),
        FieldOption("vacant", "Vacant"),
    ]
    assert BUILDER.parse_options(BUILDER.format_options(options)) == options


@pytest.mark.parametrize(
    "raw,operator,source,expected",
    [
        ("anything", "is_empty", None, None),
        (" Yes ", "equals", Field(id="flag", type="checkbox"), True),
        ("off", "equals", Field(id="flag", type="checkbox"), False),
        ("1500", "greater_than", Field(id="gla", type="text"), 1500.0),
        ("large", "less_than", Field(id="gla", type="text"), "large"),
        (" tenant ", "equals", Field(id="occ", type="radio"), "tenant"),
    ],
)
def test_parse_rule_value(raw, operator, source, expected):
    """Typed rule values are converted to what the condition compares against."""

    assert BUILDER.parse_rule_value(raw, operator, source) == expected


def test_validators_from_settings():
    """Only the settings that are switched on become validators."""

    assert BUILDER.validators_from_settings(False) == []
    assert BUILDER.validators_from_settings(True, 2, 0, r" \d+ ") == [
        Validator("required"),
        Validator("min_length", 2),
        Validator("pattern", r"\d+"),
    ]


def test_rules_frame_lists_rules():
    """The rule table names fields by label and id."""

    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id)
    source = session.editor.add_field(section.id, "text", label="Zoning")
    target = session.editor.add_field(section.id, "textarea", label="Zoning notes")
    rule = session.editor.add_rule(source.id, "equals", "illegal", target.id, "show")

    frame = BUILDER.rules_frame(session)

    assert frame.to_dict("records") == [
        {
            "Rule": rule.id,
            "When": f"Zoning ({source.id})",
            "Condition": rule.condition.describe(),
            "Then": "Show",
            "Field": f"Zoning notes ({target.id})",
        }
    ]


def test_effective_state_rows_follow_document_order():
    """Preview rows report the derived state and any validation errors."""

    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id, "Contact")
    name = session.editor.add_field(section.id, "text", label="Name")
    email = session.editor.add_field(section.id, "email", label="Email")
    session.editor.update_field(name.id, validators=[Validator("required")])
    session.editor.add_rule(name.id, "is_empty", None, email.id, "hide")

    rows = PREVIEW.effective_state_rows(session.resolve())

    assert [(row["Field"], row["State"]) for row in rows] == [
        ("Name", "Visible · required"),
        ("Email", "Hidden"),
    ]
    assert rows[0]["Errors"] == "Name is required"
    assert rows[0]["Section"] == "Contact"


def test_forms_overview_counts_entities(tmp_path):
    """The home table summarises every stored form."""

    store = LocalFormStore(tmp_path)
    session = EditingSession.new("Overview", store)
    section = session.editor.add_section(session.form.pages[0].id)
    first = session.editor.add_field(section.id, "text")
    second = session.editor.add_field(section.id, "text")
    session.editor.add_rule(first.id, "is_empty", None, second.id, "disable")
    session.save()

    frame = Home.forms_overview(store)

    assert frame.to_dict("records") == [
        {"Form ID": session.form.id, "Title": "Overview", "Pages": 1, "Sections": 1, "Fields": 2, "Rules": 1}
    ]


def test_summarise_document_tolerates_missing_parts():
    """Documents without pages or rules still produce a row."""

    assert Home.summarise_document("abc", {}) == {
        "Form ID": "abc",
        "Title": "abc",
        "Pages": 0,
        "Sections": 0,
        "Fields": 0,
        "Rules": 0,
    }


def test_export_filename_uses_title_slug():
    """Exports are named after the form title."""

    session = EditingSession.new("Site Visit / 2024")

    assert BUILDER.export_filename(session.form) == "form-site-visit-2024.json"


def test_read_form_upload_round_trips_export():
    """An exported file imports back to an equal form."""

    session = EditingSession.new("Exported")
    section = session.editor.add_section(session.form.pages[0].id)
    session.editor.add_field(section.id, "checkbox", "quarter", "Flag")

    form = BUILDER.read_form_upload(dumps(session.form).encode("utf-8"))

    assert form == session.form


@pytest.mark.parametrize(
    "data,message",
    [
        (b"{not json", "not valid JSON"),
        (b"\xff\xfe\x00", "not UTF-8"),
        (b'{"id": "x", "pages": [{"sections": []}]}', "Page 1: missing id"),
    ],
)
def test_read_form_upload_reports_invalid_files(data, message):
    """Broken uploads surface as a list of readable errors."""

    with pytest.raises(SchemaValidationError) as excinfo:
        BUILDER.read_form_upload(data)

    assert any(message in error for error in excinfo.value.errors)
