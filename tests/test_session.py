"""Tests for the editing session context."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Mapping

import pytest

from uad_forms.errors import CyclicRuleGraph, InvalidType
from uad_forms.fields import Validator
from uad_forms.form_store import NEW_FORM, LocalFormStore, SaveResult
from uad_forms.rule_engine import EffectiveState
from uad_forms.serialization import form_from_dict
from uad_forms.session import EditingSession


class RecordingStore:
    """In-memory store that remembers every document it was handed."""

    def __init__(self) -> None:
        self.saved: List[Dict[str, Any]] = []

    def load(self, form_id: str) -> Dict[str, Any]:
        return self.saved[-1]

    def save(self, form_id: str, document: Mapping[str, Any]) -> SaveResult:
        self.saved.append(dict(document))
        return SaveResult(True, f"memory://{form_id}")

    def list_forms(self) -> Dict[str, str]:
        return {}


def test_new_session_has_one_page() -> None:
    session = EditingSession.new("Inspection")

    assert session.form.title == "Inspection"
    assert [page.title for page in session.form.pages] == ["Page 1"]
    assert session.revision == 0


def test_resolve_is_cached_per_revision() -> None:
    """The derived view is reused until the next edit."""

    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id)
    first = session.resolve()

    assert session.resolve() is first
    assert first.layout[section.id] == []

    item = session.editor.add_field(section.id, "text", "half", "Owner")
    second = session.resolve()

    assert second is not first
    assert second.revision == session.revision
    assert second.states == {item.id: EffectiveState.VISIBLE_ENABLED}
    assert [slot.field_id for slot in second.layout[section.id]] == [item.id]


def test_failed_edit_does_not_bump_revision() -> None:
    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id)
    revision = session.revision

    with pytest.raises(InvalidType):
        session.editor.add_field(section.id, "signature")

    assert session.revision == revision


def test_resolve_reports_validation_errors_for_visible_fields() -> None:
    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id)
    toggle = session.editor.add_field(section.id, "checkbox", "quarter", "Has tenant")
    tenant = session.editor.add_field(section.id, "text", "half", "Tenant")
    session.editor.update_field(tenant.id, validators=[Validator("required", message="Tenant needed")])
    session.editor.add_rule(toggle.id, "equals", True, tenant.id, "show")

    assert session.resolve().errors == {}

    session.editor.set_field_value(toggle.id, True)
    assert session.resolve().errors == {tenant.id: ["Tenant needed"]}


def test_reset_on_hide_switch_recomputes() -> None:
    session = EditingSession.new()
    section = session.editor.add_section(session.form.pages[0].id)
    a = session.editor.add_field(section.id, "checkbox", "quarter", "A")
    b = session.editor.add_field(section.id, "text", "quarter", "B")
    c = session.editor.add_field(section.id, "text", "quarter", "C")
    session.editor.add_rule(a.id, "equals", True, b.id, "hide")
    session.editor.add_rule(b.id, "equals", "yes", c.id, "show")
    session.editor.set_field_value(b.id, "yes")
    session.editor.set_field_value(a.id, True)

    assert session.resolve().states[c.id] is EffectiveState.VISIBLE_ENABLED
    session.set_reset_on_hide(True)
    assert session.resolve().states[c.id] is EffectiveState.HIDDEN


def test_save_and_open_with_local_store(tmp_path) -> None:
    store = LocalFormStore(tmp_path)
    session = EditingSession.new("Stored", store)
    section = session.editor.add_section(session.form.pages[0].id, "Only")
    session.editor.add_field(section.id, "select", "two_thirds", "Condition")

    assert session.dirty
    result = session.save()

    assert result.success
    assert result.location == str(tmp_path / session.form.id / "form_schema.json")
    assert not session.dirty

    reopened = EditingSession.open(store, session.form.id)
    assert reopened.form == session.form
    assert not reopened.dirty
    assert store.list_forms() == {session.form.id: "Stored"}


def test_open_new_form_sentinel() -> None:
    store = RecordingStore()

    session = EditingSession.open(store, NEW_FORM)

    assert session.store is store
    assert len(session.form.pages) == 1
    assert store.saved == []


def test_save_without_store_raises() -> None:
    with pytest.raises(RuntimeError):
        EditingSession.new().save()


def test_save_async_uses_snapshot_taken_before_awaiting() -> None:
    """Edits made during a save land in the next save, not this one."""

    store = RecordingStore()
    session = EditingSession.new("Before", store)

    async def scenario() -> SaveResult:
        task = asyncio.ensure_future(session.save_async())
        await asyncio.sleep(0)
        session.editor.rename_form("After")
        return await task

    result = asyncio.run(scenario())

    assert result.success
    assert store.saved[0]["title"] == "Before"
    assert session.form.title == "After"
    assert session.dirty

    session.save()
    assert store.saved[1]["title"] == "After"
    assert form_from_dict(store.saved[1]) == session.form


def test_cycle_in_loaded_form_surfaces_on_resolve() -> None:
    document = {
        "id": "form",
        "title": "Loop",
        "pages": [
            {
                "id": "page",
                "sections": [
                    {"id": "section", "fields": [{"id": "a", "type": "text"}, {"id": "b", "type": "text"}]}
                ],
            }
        ],
        "rules": [
            {"id": "r1", "source_field_id": "a", "condition": {"operator": "is_empty"}, "target_field_id": "b", "effect": "hide"},
            {"id": "r2", "source_field_id": "b", "condition": {"operator": "is_empty"}, "target_field_id": "a", "effect": "hide"},
        ],
    }
    store = RecordingStore()
    store.saved.append(document)
    session = EditingSession.open(store, "form")

    with pytest.raises(CyclicRuleGraph):
        session.resolve()

    session.editor.remove_rule("r2")
    assert session.resolve().states["b"] is EffectiveState.HIDDEN
