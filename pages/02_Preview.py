"""Preview page: fill in the form and watch rules change field states."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from Home import get_session
from uad_forms.errors import FormSchemaError
from uad_forms.layout import group_rows
from uad_forms.rule_engine import EffectiveState
from uad_forms.schema import Field
from uad_forms.schema_defaults import state_label
from uad_forms.session import EditingSession, ResolvedForm
from uad_forms.ui_theme import apply_app_theme, page_header

UNSELECTED_LABEL = "(select an option)"


def effective_state_rows(resolved: ResolvedForm) -> List[Dict[str, Any]]:
    """Return one row per field describing its derived state and value."""

    rows: List[Dict[str, Any]] = []
    for page in resolved.form.pages:
        for section in page.sections:
            for item in section.fields:
                state = resolved.states[item.id]
                rows.append(
                    {
                        "Page": page.title,
                        "Section": section.title,
                        "Field": item.label or item.id,
                        "State": state_label(state),
                        "Value": item.value.raw,
                        "Errors": "; ".join(resolved.errors.get(item.id, [])),
                    }
                )
    return rows


def render_input(item: Field, state: EffectiveState) -> Any:
    """Render the widget for ``item`` and return the value it holds."""

    label = f"{item.label or item.id}{' *' if state is EffectiveState.VISIBLE_REQUIRED else ''}"
    disabled = state is EffectiveState.VISIBLE_DISABLED
    key = f"preview_{item.id}"
    current = item.value.raw

    if item.type == "textarea":
        return st.text_area(label, value=current, disabled=disabled, key=key)
    if item.type in {"text", "email"}:
        return st.text_input(label, value=current, disabled=disabled, key=key)
    if item.type == "checkbox":
        return st.checkbox(label, value=current, disabled=disabled, key=key)

    option_ids = [option.id for option in item.options]
    labels = {option.id: option.label for option in item.options}
    if item.type == "radio":
        return st.radio(
            label,
            options=option_ids,
            index=option_ids.index(current) if current in option_ids else None,
            format_func=lambda value: labels.get(value, value),
            disabled=disabled,
            key=key,
        )
    choices: List[Any] = [None, *option_ids]
    return st.selectbox(
        label,
        options=choices,
        index=choices.index(current) if current in choices else 0,
        format_func=lambda value: UNSELECTED_LABEL if value is None else labels.get(value, value),
        disabled=disabled,
        key=key,
    )


def render_page(session: EditingSession, resolved: ResolvedForm, page_id: str) -> None:
    page = session.form.get_page(page_id)
    for section in page.sections:
        st.subheader(section.title)
        fields = {item.id: item for item in section.fields}
        for row in group_rows(resolved.layout.get(section.id, [])):
            visible = [slot for slot in row if resolved.states[slot.field_id].visible]
            if not visible:
                continue
            spans = [slot.grid_column_span for slot in visible]
            remainder = 12 - sum(spans)
            columns = st.columns(spans + ([remainder] if remainder else []))
            for column, slot in zip(columns, visible):
                item = fields[slot.field_id]
                with column:
                    value = render_input(item, resolved.states[item.id])
                    if value != item.value.raw:
                        try:
                            session.editor.set_field_value(item.id, value)
                        except FormSchemaError as exc:
                            st.error(str(exc))
                        else:
                            st.rerun()
                    for message in resolved.errors.get(item.id, []):
                        st.caption(f"⚠️ {message}")


def main() -> None:
    apply_app_theme(page_title="Form preview", page_icon="👁️")
    session = get_session()
    if session is None:
        page_header("Form preview", "Open a form from the home page first.")
        st.page_link("Home.py", label="Choose a form", icon="🏠")
        return

    page_header(f"Preview: {session.form.title}", "Answers here drive the conditional rules.")
    reset = st.toggle(
        "Clear answers of hidden fields when they drive rules",
        value=session.reset_on_hide,
    )
    session.set_reset_on_hide(reset)

    try:
        resolved = session.resolve()
    except FormSchemaError as exc:
        st.error(f"Rules cannot be evaluated: {exc}")
        return

    pages = session.form.pages
    if not pages:
        st.info("This form has no pages yet.")
        return
    for tab, page in zip(st.tabs([page.title for page in pages]), pages):
        with tab:
            render_page(session, resolved, page.id)

    with st.expander("Effective field states"):
        st.dataframe(pd.DataFrame(effective_state_rows(resolved)), hide_index=True, use_container_width=True)


if __name__ == "__main__":
    main()
