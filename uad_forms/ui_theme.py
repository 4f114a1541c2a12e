"""Shared visual identity for the form builder pages."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import streamlit as st

from uad_forms.rule_engine import EffectiveState

_THEME_CSS = """
<style>
:root {
    --uad-accent: #1D4ED8;
    --uad-accent-soft: #DBEAFE;
    --uad-surface: #FFFFFF;
    --uad-border: rgba(29, 78, 216, 0.18);
    --uad-text: #0F172A;
    --uad-muted: #475569;
    --uad-hidden: #94A3B8;
    --uad-required: #B45309;
    --uad-disabled: #64748B;
}

.block-container {
    padding-top: 2rem;
    padding-bottom: 3rem;
}

.uad-header {
    padding: 1.25rem 1.5rem;
    border-radius: 1rem;
    border: 1px solid var(--uad-border);
    background: var(--uad-surface);
    margin-bottom: 1.5rem;
}

.uad-header__title {
    margin: 0;
    font-size: 1.9rem;
    color: var(--uad-text);
}

.uad-header__subtitle {
    margin: 0.25rem 0 0 0;
    color: var(--uad-muted);
}

.uad-section-card {
    padding: 1rem 1.25rem;
    border-radius: 1rem;
    border: 1px solid var(--uad-border);
    margin-bottom: 1rem;
}

.uad-section-card__description {
    color: var(--uad-muted);
    margin-top: -0.5rem;
}

.uad-state {
    display: inline-block;
    padding: 0.1rem 0.55rem;
    border-radius: 999px;
    font-size: 0.78rem;
    font-weight: 600;
    background: var(--uad-accent-soft);
    color: var(--uad-accent);
}

.uad-state--hidden { background: #F1F5F9; color: var(--uad-hidden); }
.uad-state--visible_required { background: #FEF3C7; color: var(--uad-required); }
.uad-state--visible_disabled { background: #E2E8F0; color: var(--uad-disabled); }
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Set up consistent page configuration and inject the shared CSS theme."""

    st.set_page_config(
        page_title=page_title,
        page_icon=page_icon,
        layout="wide",
        initial_sidebar_state="expanded",
    )
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(title: str, subtitle: Optional[str] = None) -> None:
    """Render the page title block."""

    subtitle_markup = f"<p class='uad-header__subtitle'>{subtitle}</p>" if subtitle else ""
    st.markdown(
        f"<div class='uad-header'><h1 class='uad-header__title'>{title}</h1>{subtitle_markup}</div>",
        unsafe_allow_html=True,
    )


@contextmanager
def section_card(title: Optional[str] = None, description: Optional[str] = None) -> Iterator[Any]:
    """Render a bordered container with optional title and description."""

    container = st.container()
    container.markdown("<div class='uad-section-card'>", unsafe_allow_html=True)
    if title:
        container.markdown(f"<h3>{title}</h3>", unsafe_allow_html=True)
    if description:
        container.markdown(
            f"<p class='uad-section-card__description'>{description}</p>",
            unsafe_allow_html=True,
        )
    try:
        yield container
    finally:
        container.markdown("</div>", unsafe_allow_html=True)


def state_badge(state: EffectiveState, label: str) -> str:
    """Return HTML for a pill describing a field's effective state."""

    return f"<span class='uad-state uad-state--{state.value}'>{label}</span>"
