"""Streamlit home screen listing stored appraisal forms."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from uad_forms.config import AppConfig, configure_logging, load_config
from uad_forms.errors import FormSchemaError
from uad_forms.form_store import NEW_FORM, FormStore, LocalFormStore
from uad_forms.github_backend import GitHubFormStore
from uad_forms.schema_defaults import DEFAULT_FORM_TITLE, NEW_FORM_LABEL
from uad_forms.session import EditingSession
from uad_forms.ui_theme import apply_app_theme, page_header

logger = logging.getLogger(__name__)

SESSION_STATE_KEY = "builder_session"
OVERVIEW_COLUMNS = ("Form ID", "Title", "Pages", "Sections", "Fields", "Rules")


def _secrets() -> Dict[str, Any]:
    """Return Streamlit secrets as a plain dict, empty when none are configured."""

    try:
        return dict(st.secrets)
    except Exception:  # pragma: no cover - no secrets.toml present
        return {}


@st.cache_resource(show_spinner=False)
def get_config() -> AppConfig:
    config = load_config(_secrets())
    configure_logging(config.log_level)
    return config


@st.cache_resource(show_spinner=False)
def get_store() -> FormStore:
    """Return the configured form store, preferring GitHub when set up."""

    config = get_config()
    if config.github is not None:
        return GitHubFormStore(config.github)
    return LocalFormStore(config.forms_root)


def get_session() -> Optional[EditingSession]:
    session = st.session_state.get(SESSION_STATE_KEY)
    return session if isinstance(session, EditingSession) else None


def start_session(form_id: Any, title: str = DEFAULT_FORM_TITLE) -> EditingSession:
    """Open ``form_id`` (or a new form) and make it the active session."""

    config = get_config()
    store = get_store()
    if form_id is NEW_FORM:
        session = EditingSession.new(title, store, reset_on_hide=config.reset_on_hide)
    else:
        session = EditingSession.open(store, form_id, reset_on_hide=config.reset_on_hide)
    st.session_state[SESSION_STATE_KEY] = session
    return session


def summarise_document(form_id: str, document: Mapping[str, Any]) -> Dict[str, Any]:
    """Return one overview row for a serialized form."""

    pages = document.get("pages") if isinstance(document.get("pages"), list) else []
    sections = [section for page in pages for section in page.get("sections", []) or []]
    fields = [item for section in sections for item in section.get("fields", []) or []]
    rules = document.get("rules") if isinstance(document.get("rules"), list) else []
    return {
        "Form ID": form_id,
        "Title": str(document.get("title") or form_id),
        "Pages": len(pages),
        "Sections": len(sections),
        "Fields": len(fields),
        "Rules": len(rules),
    }


def forms_overview(store: FormStore) -> pd.DataFrame:
    """Return a table describing every form the store knows about."""

    rows: List[Dict[str, Any]] = []
    for form_id in store.list_forms():
        try:
            document = store.load(form_id)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Could not load form %s: %s", form_id, exc)
            continue
        rows.append(summarise_document(form_id, document))
    return pd.DataFrame(rows, columns=list(OVERVIEW_COLUMNS))


def main() -> None:
    """Render the home screen."""

    apply_app_theme(page_title="Appraisal forms", page_icon="🏠")
    page_header("Appraisal forms", "Create a form or pick one to keep editing.")

    store = get_store()
    overview = forms_overview(store)
    if overview.empty:
        st.info("No forms stored yet.")
    else:
        st.dataframe(overview, hide_index=True, use_container_width=True)

    choices: List[Any] = [NEW_FORM, *overview["Form ID"].tolist()]
    titles = dict(zip(overview["Form ID"], overview["Title"]))
    selected = st.selectbox(
        "Form",
        options=choices,
        format_func=lambda value: NEW_FORM_LABEL if value is NEW_FORM else f"{titles.get(value, value)} ({value})",
    )
    title = DEFAULT_FORM_TITLE
    if selected is NEW_FORM:
        title = st.text_input("Title", value=DEFAULT_FORM_TITLE)

    active = get_session()
    if active is not None:
        st.caption(f"Currently editing: {active.form.title} ({active.form.id})")

    if st.button("Open in builder", type="primary"):
        try:
            start_session(selected, title)
        except (FormSchemaError, OSError, ValueError) as exc:
            st.error(f"Could not open form: {exc}")
            return
        st.switch_page("pages/01_Form_Builder.py")


if __name__ == "__main__":
    main()
