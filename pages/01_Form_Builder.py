"""Builder page for editing the pages, sections, fields and rules of a form."""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from Home import SESSION_STATE_KEY, get_session
from uad_forms.errors import FormSchemaError, SchemaValidationError
from uad_forms.fields import (
    CHOICE_TYPES,
    FIELD_TYPES,
    FIELD_TYPE_LABELS,
    FIELD_WIDTHS,
    FieldOption,
    Validator,
    width_label,
)
from uad_forms.layout import group_rows
from uad_forms.rules import EFFECTS, OPERATOR_LABELS, OPERATORS, UNARY_OPERATORS
from uad_forms.schema import Field, Form, Section
from uad_forms.schema_defaults import DEFAULT_SECTION_TITLE, EFFECT_LABELS, state_label
from uad_forms.serialization import dumps, loads
from uad_forms.session import EditingSession, ResolvedForm
from uad_forms.ui_theme import apply_app_theme, page_header, section_card, state_badge

ACTIVE_PAGE_STATE_KEY = "builder_active_page"
ACTIVE_FIELD_STATE_KEY = "builder_active_field"
TRUTHY = {"1", "true", "yes", "on", "checked"}


def _slugify(text: str) -> str:
    """Return a lowercase identifier derived from ``text``."""

    slug = re.sub(r"[^a-z0-9]+", "_", text.strip().lower()).strip("_")
    return slug or "option"


def parse_options(text: str) -> List[FieldOption]:
    """Parse one option per line, written as ``id | label`` or just ``label``."""

    options: List[FieldOption] = []
    seen: set[str] = set()
    for line in text.splitlines():
        if not line.strip():
            continue
        if "|" in line:
            identifier, label = (part.strip() for part in line.split("|", 1))
        else:
            label = line.strip()
            identifier = _slugify(label)
        base, suffix = identifier or _slugify(label), 2
        identifier = base
        while identifier in seen:
            identifier = f"{base}_{suffix}"
            suffix += 1
        seen.add(identifier)
        options.append(FieldOption(identifier, label or identifier))
    return options


def format_options(options: Sequence[FieldOption]) -> str:
    """Render options in the ``id | label`` format read by :func:`parse_options`."""

    return "\n".join(f"{option.id} | {option.label}" for option in options)


def parse_rule_value(raw: str, operator: str, source: Optional[Field]) -> Any:
    """Convert the text typed for a rule into the value compared at runtime."""

    if operator in UNARY_OPERATORS:
        return None
    text = raw.strip()
    if source is not None and source.type == "checkbox":
        return text.lower() in TRUTHY
    if operator in {"greater_than", "less_than"}:
        try:
            return float(text)
        except ValueError:
            return text
    return text


def validators_from_settings(
    required: bool,
    min_length: int = 0,
    max_length: int = 0,
    pattern: str = "",
) -> List[Validator]:
    """Return validators for the settings exposed in the field editor."""

    validators: List[Validator] = []
    if required:
        validators.append(Validator("required"))
    if min_length:
        validators.append(Validator("min_length", int(min_length)))
    if max_length:
        validators.append(Validator("max_length", int(max_length)))
    if pattern.strip():
        validators.append(Validator("pattern", pattern.strip()))
    return validators


def export_filename(form: Form) -> str:
    """Return the download name for ``form``, e.g. ``form-site-visit.json``."""

    slug = re.sub(r"[^a-z0-9]+", "-", (form.title or form.id).lower()).strip("-")
    return f"form-{slug or form.id}.json"


def read_form_upload(data: bytes) -> Form:
    """Parse an uploaded JSON document into a form.

    Undecodable or malformed files raise :class:`SchemaValidationError` like
    any other invalid document.
    """

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        raise SchemaValidationError(["The file is not UTF-8 text"]) from None
    try:
        return loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaValidationError([f"The file is not valid JSON: {exc.msg} (line {exc.lineno})"]) from None


def _validator_value(item: Field, kind: str, default: Any) -> Any:
    """Return the value of the first ``kind`` validator on ``item``."""

    return next((v.value for v in item.validators if v.kind == kind), default)


def _rerun_app() -> None:
    """Trigger a Streamlit rerun using the available API."""

    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


def _apply(action: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """Run an editor action, showing failures inline instead of raising."""

    try:
        action(*args, **kwargs)
    except FormSchemaError as exc:
        st.error(str(exc))
        return False
    _rerun_app()
    return True


def render_page_navigation(session: EditingSession) -> Optional[str]:
    """Render the sidebar page list and return the active page id."""

    editor = session.editor
    pages = session.form.pages
    st.sidebar.subheader("Pages")
    if st.sidebar.button("Add page", use_container_width=True):
        page = editor.add_page()
        st.session_state[ACTIVE_PAGE_STATE_KEY] = page.id
        _rerun_app()
    if not pages:
        return None

    page_ids = [page.id for page in pages]
    titles = {page.id: page.title for page in pages}
    current = st.session_state.get(ACTIVE_PAGE_STATE_KEY)
    if current not in page_ids:
        current = page_ids[0]
    active = st.sidebar.radio(
        "Active page",
        options=page_ids,
        index=page_ids.index(current),
        format_func=lambda value: titles.get(value, value),
    )
    st.session_state[ACTIVE_PAGE_STATE_KEY] = active

    new_title = st.sidebar.text_input("Page title", value=titles[active], key=f"page_title_{active}")
    if new_title != titles[active]:
        _apply(editor.rename_page, active, new_title)

    col_up, col_down, col_delete = st.sidebar.columns(3)
    if col_up.button("↑", key=f"page_up_{active}", help="Move page up"):
        _apply(editor.move_page_up, active)
    if col_down.button("↓", key=f"page_down_{active}", help="Move page down"):
        _apply(editor.move_page_down, active)
    if col_delete.button("🗑", key=f"page_delete_{active}", help="Delete page"):
        st.session_state.pop(ACTIVE_PAGE_STATE_KEY, None)
        _apply(editor.delete_page, active)
    return active


def render_field_card(session: EditingSession, item: Field, resolved: ResolvedForm) -> None:
    """Render the compact card for one field with its ordering controls."""

    editor = session.editor
    state = resolved.states[item.id]
    with st.container(border=True):
        st.markdown(
            f"**{item.label or item.id}** {state_badge(state, state_label(state))}",
            unsafe_allow_html=True,
        )
        st.caption(f"{FIELD_TYPE_LABELS[item.type]} · {width_label(item.width)}")
        for message in resolved.errors.get(item.id, []):
            st.caption(f"⚠️ {message}")
        col_up, col_down, col_copy, col_edit, col_delete = st.columns(5)
        if col_up.button("↑", key=f"field_up_{item.id}", help="Move up"):
            _apply(editor.move_field_up, item.id)
        if col_down.button("↓", key=f"field_down_{item.id}", help="Move down"):
            _apply(editor.move_field_down, item.id)
        if col_copy.button("⧉", key=f"field_copy_{item.id}", help="Duplicate field"):
            _apply(editor.duplicate_field, item.id)
        if col_edit.button("✎", key=f"field_edit_{item.id}", help="Edit field"):
            st.session_state[ACTIVE_FIELD_STATE_KEY] = item.id
            _rerun_app()
        if col_delete.button("🗑", key=f"field_delete_{item.id}", help="Delete field and its rules"):
            if st.session_state.get(ACTIVE_FIELD_STATE_KEY) == item.id:
                st.session_state.pop(ACTIVE_FIELD_STATE_KEY, None)
            _apply(editor.delete_field, item.id)


def render_add_field(session: EditingSession, section: Section) -> None:
    """Render the form that appends a field to ``section``."""

    with st.form(f"add_field_{section.id}", clear_on_submit=True):
        col_type, col_width, col_label = st.columns([2, 2, 3])
        field_type = col_type.selectbox(
            "Type",
            options=list(FIELD_TYPES),
            format_func=lambda value: FIELD_TYPE_LABELS.get(value, value),
        )
        width = col_width.selectbox(
            "Width",
            options=list(FIELD_WIDTHS),
            index=list(FIELD_WIDTHS).index("full"),
            format_func=width_label,
        )
        label = col_label.text_input("Label")
        if st.form_submit_button("Add field"):
            _apply(session.editor.add_field, section.id, field_type, width, label or None)


def render_section(session: EditingSession, section: Section, resolved: ResolvedForm) -> None:
    """Render a section's fields on the 12-column grid."""

    editor = session.editor
    with section_card(section.title or DEFAULT_SECTION_TITLE) as card:
        with card:
            col_title, col_up, col_down, col_delete = st.columns([6, 1, 1, 1])
            new_title = col_title.text_input(
                "Section title",
                value=section.title,
                key=f"section_title_{section.id}",
                label_visibility="collapsed",
            )
            if new_title != section.title:
                _apply(editor.rename_section, section.id, new_title)
            if col_up.button("↑", key=f"section_up_{section.id}", help="Move section up"):
                _apply(editor.move_section_up, section.id)
            if col_down.button("↓", key=f"section_down_{section.id}", help="Move section down"):
                _apply(editor.move_section_down, section.id)
            if col_delete.button("🗑", key=f"section_delete_{section.id}", help="Delete section"):
                _apply(editor.delete_section, section.id)

            fields = {item.id: item for item in section.fields}
            for row in group_rows(resolved.layout.get(section.id, [])):
                spans = [slot.grid_column_span for slot in row]
                remainder = 12 - sum(spans)
                columns = st.columns(spans + ([remainder] if remainder else []))
                for column, slot in zip(columns, row):
                    with column:
                        render_field_card(session, fields[slot.field_id], resolved)
            render_add_field(session, section)


def render_field_editor(session: EditingSession, item: Field) -> None:
    """Render the settings form for the selected field."""

    editor = session.editor
    with section_card(f"Edit field: {item.label or item.id}", f"Identifier `{item.id}`") as card:
        form = card.form(f"edit_field_{item.id}")
        with form:
            label = st.text_input("Label", value=item.label)
            width = st.selectbox(
                "Width",
                options=list(FIELD_WIDTHS),
                index=list(FIELD_WIDTHS).index(item.width),
                format_func=width_label,
            )
            options_text = ""
            if item.type in CHOICE_TYPES:
                options_text = st.text_area(
                    "Options",
                    value=format_options(item.options),
                    help="One option per line, as `id | label` or just a label.",
                )
            required = st.checkbox("Required", value=item.declares_required)
            col_min, col_max = st.columns(2)
            min_length = col_min.number_input(
                "Minimum length", min_value=0, value=int(_validator_value(item, "min_length", 0) or 0)
            )
            max_length = col_max.number_input(
                "Maximum length", min_value=0, value=int(_validator_value(item, "max_length", 0) or 0)
            )
            pattern = st.text_input("Pattern", value=str(_validator_value(item, "pattern", "") or ""))
            submitted = st.form_submit_button("Save field", type="primary")

        if submitted:
            try:
                editor.update_field(
                    item.id,
                    label=label,
                    options=parse_options(options_text) if item.type in CHOICE_TYPES else None,
                    validators=validators_from_settings(required, min_length, max_length, pattern),
                )
                if width != item.width:
                    editor.resize_field(item.id, width)
            except FormSchemaError as exc:
                st.error(str(exc))
            else:
                st.session_state.pop(ACTIVE_FIELD_STATE_KEY, None)
                _rerun_app()


def _field_choice_label(session: EditingSession, field_id: str) -> str:
    """Return ``label (id)`` for selectors and the rule table."""

    if not session.form.has_field(field_id):
        return f"{field_id} (missing)"
    item = session.form.get_field(field_id)
    return f"{item.label or item.id} ({item.id})"


def rules_frame(session: EditingSession) -> pd.DataFrame:
    """Return the rule table as a DataFrame for display."""

    rows = []
    for rule in session.form.rules:
        rows.append(
            {
                "Rule": rule.id,
                "When": _field_choice_label(session, rule.source_field_id),
                "Condition": rule.condition.describe(),
                "Then": EFFECT_LABELS.get(rule.effect, rule.effect),
                "Field": _field_choice_label(session, rule.target_field_id),
            }
        )
    return pd.DataFrame(rows, columns=["Rule", "When", "Condition", "Then", "Field"])


def render_rules(session: EditingSession) -> None:
    """Render the rule table and the form used to add rules."""

    editor = session.editor
    field_ids = session.form.field_ids()
    with section_card("Conditional rules", "Show, hide, require or disable fields based on other answers.") as card:
        with card:
            frame = rules_frame(session)
            if frame.empty:
                st.info("No rules configured.")
            else:
                st.dataframe(frame, hide_index=True, use_container_width=True)
                col_rule, col_remove = st.columns([4, 1])
                rule_id = col_rule.selectbox("Rule", options=frame["Rule"].tolist(), key="rule_to_remove")
                if col_remove.button("Remove rule"):
                    _apply(editor.remove_rule, rule_id)

            if len(field_ids) < 2:
                st.caption("Add at least two fields to create rules.")
                return

            with st.form("add_rule"):
                col_source, col_operator, col_value = st.columns(3)
                source_id = col_source.selectbox(
                    "When field",
                    options=field_ids,
                    format_func=lambda value: _field_choice_label(session, value),
                )
                operator = col_operator.selectbox(
                    "Operator",
                    options=list(OPERATORS),
                    format_func=lambda value: OPERATOR_LABELS.get(value, value),
                )
                raw_value = col_value.text_input("Value")
                col_effect, col_target = st.columns(2)
                effect = col_effect.selectbox(
                    "Then", options=list(EFFECTS), format_func=lambda value: EFFECT_LABELS.get(value, value)
                )
                target_id = col_target.selectbox(
                    "Field",
                    options=field_ids,
                    format_func=lambda value: _field_choice_label(session, value),
                )
                if st.form_submit_button("Add rule"):
                    value = parse_rule_value(raw_value, operator, session.form.get_field(source_id))
                    _apply(editor.add_rule, source_id, operator, value, target_id, effect)


def render_save(session: EditingSession) -> None:
    """Render the save button and the raw schema view."""

    with section_card("Save changes", "Store the current form, rules included.") as card:
        with card:
            if session.dirty:
                st.caption(f"Unsaved changes (revision {session.revision}).")
            if st.button("Save form", type="primary"):
                try:
                    result = session.save()
                except RuntimeError as exc:
                    st.error(str(exc))
                    return
                if result.success:
                    st.success(f"Saved to {result.location}.")
                else:
                    for error in result.errors:
                        st.error(error)

    with st.expander("View raw schema"):
        st.code(json.dumps(session.snapshot(), indent=2), language="json")


def render_import_export(session: EditingSession) -> None:
    """Offer the form as a JSON download and replace it from an uploaded file."""

    with section_card("Import and export", "Move a form between installations as a JSON file.") as card:
        with card:
            st.download_button(
                "Export JSON",
                data=dumps(session.form),
                file_name=export_filename(session.form),
                mime="application/json",
            )
            upload = st.file_uploader("Import JSON", type=["json"], key="import_form")
            if upload is None or not st.button("Replace current form with upload"):
                return
            try:
                form = read_form_upload(upload.getvalue())
            except SchemaValidationError as exc:
                st.error("The uploaded form is invalid:")
                for error in exc.errors:
                    st.caption(f"⚠️ {error}")
                return
            except FormSchemaError as exc:
                st.error(f"The uploaded form is invalid: {exc}")
                return
            st.session_state[SESSION_STATE_KEY] = EditingSession(
                form, session.store, reset_on_hide=session.reset_on_hide
            )
            st.session_state.pop(ACTIVE_PAGE_STATE_KEY, None)
            st.session_state.pop(ACTIVE_FIELD_STATE_KEY, None)
            _rerun_app()


def main() -> None:
    """Render the builder page."""

    apply_app_theme(page_title="Form builder", page_icon="🛠️")
    session = get_session()
    if session is None:
        page_header("Form builder", "Open a form from the home page to start editing.")
        st.page_link("Home.py", label="Choose a form", icon="🏠")
        return

    page_header(session.form.title or session.form.id, "Arrange pages, sections and fields, then add rules.")
    new_title = st.text_input("Form title", value=session.form.title)
    if new_title != session.form.title:
        session.editor.rename_form(new_title)

    try:
        resolved = session.resolve()
    except FormSchemaError as exc:
        st.error(f"Rules cannot be evaluated: {exc}")
        render_rules(session)
        return

    active_page = render_page_navigation(session)
    if active_page is None:
        st.info("This form has no pages yet.")
    else:
        page = session.form.get_page(active_page)
        for section in page.sections:
            render_section(session, section, resolved)
        if st.button("Add section"):
            _apply(session.editor.add_section, page.id)

    active_field = st.session_state.get(ACTIVE_FIELD_STATE_KEY)
    if active_field and session.form.has_field(active_field):
        render_field_editor(session, session.form.get_field(active_field))

    render_rules(session)
    render_save(session)
    render_import_export(session)


if __name__ == "__main__":
    main()
