"""Derive each field's effective state from the rule set and current values."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from uad_forms.errors import OrphanRuleReference
from uad_forms.fields import FieldValue, default_value
from uad_forms.schema import Form

logger = logging.getLogger(__name__)


class EffectiveState(str, enum.Enum):
    VISIBLE_ENABLED = "visible_enabled"
    VISIBLE_REQUIRED = "visible_required"
    VISIBLE_DISABLED = "visible_disabled"
    HIDDEN = "hidden"

    @property
    def visible(self) -> bool:
        return self is not EffectiveState.HIDDEN


@dataclass(frozen=True)
class Resolution:
    """Outcome of one evaluation pass.

    ``source_values`` holds the value each field contributed when acting as a
    rule source, which differs from its stored value only when hidden fields
    are reset.
    """

    states: Dict[str, EffectiveState]
    source_values: Dict[str, FieldValue]
    reset_on_hide: bool = False

    def state_of(self, field_id: str) -> EffectiveState:
        return self.states[field_id]

    def visible_ids(self) -> List[str]:
        return [field_id for field_id, state in self.states.items() if state.visible]


def check_rule_references(form: Form) -> None:
    """Raise :class:`OrphanRuleReference` for rules naming missing fields."""

    known = set(form.field_ids())
    for rule in form.rules:
        for field_id in (rule.source_field_id, rule.target_field_id):
            if field_id not in known:
                raise OrphanRuleReference(rule.id, field_id)


def evaluate(
    form: Form,
    values: Optional[Mapping[str, FieldValue]] = None,
    *,
    reset_on_hide: bool = False,
) -> Resolution:
    """Evaluate every rule of ``form`` and return the effective field states.

    ``values`` overrides the values stored on the fields. Fields are visited
    in dependency order so a target always sees the settled state of its
    sources. Visibility follows the last ``show``/``hide`` rule applied (a
    ``show`` rule hides its target while its condition fails); ``require`` and
    ``disable`` only apply while their condition holds. Raises
    :class:`~uad_forms.errors.CyclicRuleGraph` before anything is computed when
    the rules form a cycle.
    """

    check_rule_references(form)
    fields = {item.id: item for item in form.iter_fields()}
    order = [field_id for field_id in form.rules.topological_order(list(fields)) if field_id in fields]
    overrides = values or {}

    states: Dict[str, EffectiveState] = {}
    source_values: Dict[str, FieldValue] = {}
    for field_id in order:
        item = fields[field_id]
        visible = True
        interaction = (
            EffectiveState.VISIBLE_REQUIRED if item.declares_required else EffectiveState.VISIBLE_ENABLED
        )

        for rule in form.rules.rules_targeting(field_id):
            matched = rule.condition.matches(source_values[rule.source_field_id])
            if rule.effect == "show":
                visible = matched
            elif rule.effect == "hide":
                visible = not matched
            elif matched and rule.effect == "require":
                interaction = EffectiveState.VISIBLE_REQUIRED
            elif matched and rule.effect == "disable":
                interaction = EffectiveState.VISIBLE_DISABLED

        states[field_id] = interaction if visible else EffectiveState.HIDDEN
        current = overrides.get(field_id, item.value)
        if reset_on_hide and not visible:
            current = default_value(item.type)
        source_values[field_id] = current

    logger.debug(
        "Evaluated %d rule(s) over %d field(s) for form %s", len(form.rules), len(order), form.id
    )
    # report states in document order rather than dependency order
    ordered_states = {field_id: states[field_id] for field_id in fields}
    ordered_values = {field_id: source_values[field_id] for field_id in fields}
    return Resolution(ordered_states, ordered_values, reset_on_hide)


__all__ = ["EffectiveState", "Resolution", "check_rule_references", "evaluate"]
