"""Tests for effective-state evaluation."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from uad_forms.errors import CyclicRuleGraph, OrphanRuleReference
from uad_forms.fields import TextValue, Validator
from uad_forms.rule_engine import EffectiveState, evaluate
from uad_forms.rules import Condition, Rule
from uad_forms.serialization import form_from_dict
from uad_forms.session import EditingSession


def _session(*specs: tuple) -> tuple:
    """Return a session and the fields created from ``(type, label)`` specs."""

    session = EditingSession.new("Rules")
    section = session.editor.add_section(session.form.pages[0].id, "Main")
    fields = [session.editor.add_field(section.id, field_type, "half", label) for field_type, label in specs]
    return session, fields


def _document(rules: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a serialized form with text fields a, b, c and ``rules``."""

    return {
        "id": "form",
        "title": "Cycle",
        "pages": [
            {
                "id": "page",
                "sections": [
                    {
                        "id": "section",
                        "fields": [{"id": key, "type": "text", "width": "third"} for key in ("a", "b", "c")],
                    }
                ],
            }
        ],
        "rules": rules,
    }


def _edge(rule_id: str, source: str, target: str) -> Dict[str, Any]:
    return {
        "id": rule_id,
        "source_field_id": source,
        "condition": {"operator": "is_not_empty"},
        "target_field_id": target,
        "effect": "show",
    }


def test_show_rule_follows_source_value() -> None:
    """A show rule reveals its target only while the condition holds."""

    session, (x, y) = _session(("text", "X"), ("text", "Y"))
    session.editor.set_field_value(x.id, "yes")
    session.editor.add_rule(x.id, "equals", "yes", y.id, "show")

    assert evaluate(session.form).state_of(y.id) is EffectiveState.VISIBLE_ENABLED

    session.editor.set_field_value(x.id, "no")
    assert evaluate(session.form).state_of(y.id) is EffectiveState.HIDDEN


def test_values_override_stored_values() -> None:
    session, (x, y) = _session(("text", "X"), ("text", "Y"))
    session.editor.add_rule(x.id, "equals", "yes", y.id, "show")

    resolution = evaluate(session.form, {x.id: TextValue("yes")})

    assert resolution.state_of(y.id) is EffectiveState.VISIBLE_ENABLED
    assert session.form.get_field(x.id).value == TextValue("")


def test_field_without_rules_keeps_baseline() -> None:
    session, (x, y) = _session(("text", "X"), ("email", "Y"))
    session.editor.update_field(y.id, validators=[Validator("required")])

    resolution = evaluate(session.form)

    assert resolution.state_of(x.id) is EffectiveState.VISIBLE_ENABLED
    assert resolution.state_of(y.id) is EffectiveState.VISIBLE_REQUIRED


def test_require_and_disable_apply_only_while_condition_holds() -> None:
    session, (flag, target) = _session(("checkbox", "Flag"), ("text", "Target"))
    session.editor.add_rule(flag.id, "equals", True, target.id, "require")

    assert evaluate(session.form).state_of(target.id) is EffectiveState.VISIBLE_ENABLED
    session.editor.set_field_value(flag.id, True)
    assert evaluate(session.form).state_of(target.id) is EffectiveState.VISIBLE_REQUIRED

    session.editor.add_rule(flag.id, "equals", True, target.id, "disable")
    assert evaluate(session.form).state_of(target.id) is EffectiveState.VISIBLE_DISABLED


def test_last_visibility_rule_wins() -> None:
    """Later show and hide rules override earlier ones for the same target."""

    session, (x, z, y) = _session(("text", "X"), ("text", "Z"), ("text", "Y"))
    session.editor.add_rule(x.id, "equals", "a", y.id, "show")
    session.editor.add_rule(z.id, "equals", "b", y.id, "hide")
    session.editor.set_field_value(x.id, "a")

    session.editor.set_field_value(z.id, "b")
    assert evaluate(session.form).state_of(y.id) is EffectiveState.HIDDEN

    session.editor.set_field_value(z.id, "c")
    assert evaluate(session.form).state_of(y.id) is EffectiveState.VISIBLE_ENABLED


def test_hidden_required_field_is_hidden() -> None:
    session, (x, y) = _session(("text", "X"), ("text", "Y"))
    session.editor.update_field(y.id, validators=[Validator("required")])
    session.editor.add_rule(x.id, "is_empty", None, y.id, "hide")

    assert evaluate(session.form).state_of(y.id) is EffectiveState.HIDDEN


def _hidden_source_session() -> tuple:
    """A hides B when checked; B (answered "yes") shows C."""

    session, (a, b, c) = _session(("checkbox", "A"), ("text", "B"), ("text", "C"))
    session.editor.add_rule(a.id, "equals", True, b.id, "hide")
    session.editor.add_rule(b.id, "equals", "yes", c.id, "show")
    session.editor.set_field_value(b.id, "yes")
    session.editor.set_field_value(a.id, True)
    return session, (a, b, c)


def test_hidden_field_stale_value_still_drives_rules_by_default() -> None:
    """Hidden fields keep their answer and keep triggering rules."""

    session, (_, b, c) = _hidden_source_session()

    resolution = evaluate(session.form)

    assert resolution.state_of(b.id) is EffectiveState.HIDDEN
    assert resolution.state_of(c.id) is EffectiveState.VISIBLE_ENABLED
    assert resolution.source_values[b.id] == TextValue("yes")


def test_reset_on_hide_clears_hidden_source_value() -> None:
    """With reset enabled a hidden source contributes its empty value."""

    session, (_, b, c) = _hidden_source_session()

    resolution = evaluate(session.form, reset_on_hide=True)

    assert resolution.state_of(b.id) is EffectiveState.HIDDEN
    assert resolution.state_of(c.id) is EffectiveState.HIDDEN
    assert resolution.source_values[b.id] == TextValue("")
    assert session.form.get_field(b.id).value == TextValue("yes")


def test_rules_evaluate_in_dependency_order_not_document_order() -> None:
    session, (c, b, a) = _session(("text", "C"), ("text", "B"), ("checkbox", "A"))
    session.editor.add_rule(a.id, "equals", True, b.id, "hide")
    session.editor.add_rule(b.id, "equals", "yes", c.id, "show")
    session.editor.set_field_value(b.id, "yes")
    session.editor.set_field_value(a.id, True)

    resolution = evaluate(session.form, reset_on_hide=True)

    assert list(resolution.states) == [c.id, b.id, a.id]
    assert resolution.state_of(c.id) is EffectiveState.HIDDEN


def test_acyclic_chain_evaluates() -> None:
    form = form_from_dict(_document([_edge("r1", "a", "b"), _edge("r2", "b", "c")]))

    resolution = evaluate(form)

    assert resolution.state_of("a") is EffectiveState.VISIBLE_ENABLED
    assert resolution.state_of("b") is EffectiveState.HIDDEN
    assert resolution.state_of("c") is EffectiveState.HIDDEN


def test_cycle_aborts_evaluation() -> None:
    """A cyclic rule set is reported instead of half-evaluated."""

    form = form_from_dict(
        _document([_edge("r1", "a", "b"), _edge("r2", "b", "c"), _edge("r3", "c", "a")])
    )

    with pytest.raises(CyclicRuleGraph) as excinfo:
        evaluate(form)

    assert sorted(excinfo.value.field_ids) == ["a", "b", "c"]


def test_orphan_rule_reference_is_reported() -> None:
    session, (x, y) = _session(("text", "X"), ("text", "Y"))
    session.form.rules.add(Rule("rule_99999", "ghost", Condition("equals", "1"), y.id, "show"))

    with pytest.raises(OrphanRuleReference):
        evaluate(session.form)


@pytest.mark.parametrize(
    "operator,expected,value,matches",
    [
        ("equals", "yes", "yes", True),
        ("not_equals", "yes", "yes", False),
        ("contains", "acre", "0.5 acres", True),
        ("not_contains", "acre", "lot", True),
        ("greater_than", 1000, "1500", True),
        ("less_than", 1000, "n/a", False),
        ("is_empty", None, "   ", True),
        ("is_not_empty", None, "x", True),
    ],
)
def test_condition_operators_on_text(operator, expected, value, matches) -> None:
    assert Condition(operator, expected).matches(TextValue(value)) is matches
