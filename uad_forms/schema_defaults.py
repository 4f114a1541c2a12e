"""Default labels shared between the builder and preview pages."""

from __future__ import annotations

from typing import Dict

from uad_forms.rule_engine import EffectiveState

DEFAULT_FORM_TITLE = "Untitled appraisal form"
DEFAULT_SECTION_TITLE = "New section"
NEW_FORM_LABEL = "➕ Create a new form"

EFFECT_LABELS: Dict[str, str] = {
    "show": "Show",
    "hide": "Hide",
    "require": "Require",
    "disable": "Disable",
}

STATE_LABELS: Dict[EffectiveState, str] = {
    EffectiveState.VISIBLE_ENABLED: "Visible",
    EffectiveState.VISIBLE_REQUIRED: "Visible · required",
    EffectiveState.VISIBLE_DISABLED: "Visible · disabled",
    EffectiveState.HIDDEN: "Hidden",
}


def state_label(state: EffectiveState) -> str:
    """Return a human-friendly label for an effective state."""

    return STATE_LABELS.get(state, state.value)
