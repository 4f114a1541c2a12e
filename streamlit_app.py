"""Streamlit entrypoint wiring the forms list, builder and preview pages."""

import streamlit as st

PAGES = (
    ("Home.py", "Forms", "🏠"),
    ("pages/01_Form_Builder.py", "Builder", "🛠️"),
    ("pages/02_Preview.py", "Preview", "👁️"),
)


def main() -> None:
    """Register the pages and run whichever one is selected."""

    navigation = st.navigation([st.Page(path, title=title, icon=icon) for path, title, icon in PAGES])
    navigation.run()


if __name__ == "__main__":
    main()
