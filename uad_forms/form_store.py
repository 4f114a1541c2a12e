"""Save and load serialized forms from the local filesystem."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol

logger = logging.getLogger(__name__)

FORM_SCHEMA_FILENAME = "form_schema.json"
SCHEMAS_ROOT = Path("form_schemas")


class _NewForm:
    """Sentinel asking a loader for a fresh, empty form."""

    def __repr__(self) -> str:
        return "NEW_FORM"


NEW_FORM = _NewForm()


@dataclass
class SaveResult:
    success: bool
    location: str = ""
    errors: List[str] = field(default_factory=list)


class FormStore(Protocol):
    """Collaborator that persists serialized form documents."""

    def load(self, form_id: str) -> Dict[str, Any]:
        ...

    def save(self, form_id: str, document: Mapping[str, Any]) -> SaveResult:
        ...

    def list_forms(self) -> Dict[str, str]:
        ...


def resolve_remote_form_path(base_path: str, form_id: str) -> str:
    """Return the storage path for ``form_id`` using ``base_path`` as a template."""

    if "{form_id}" in base_path:
        return base_path.format(form_id=form_id)
    if base_path.endswith(".json"):
        return base_path
    return f"{base_path.rstrip('/')}/{form_id}/{FORM_SCHEMA_FILENAME}"


class LocalFormStore:
    """Keep each form at ``<root>/<form_id>/form_schema.json``."""

    def __init__(self, root: Path = SCHEMAS_ROOT) -> None:
        self.root = Path(root)

    def form_path(self, form_id: str) -> Path:
        """Return the schema file location for ``form_id``."""

        return self.root / form_id / FORM_SCHEMA_FILENAME

    def discover_forms(self) -> Dict[str, Path]:
        """Return a mapping of ``form_id -> path`` for stored schema files."""

        forms: Dict[str, Path] = {}
        if self.root.exists():
            for entry in sorted(self.root.iterdir()):
                if not entry.is_dir():
                    continue
                schema_path = entry / FORM_SCHEMA_FILENAME
                if schema_path.exists():
                    forms[entry.name] = schema_path
        return forms

    def list_forms(self) -> Dict[str, str]:
        """Return ``form_id -> title`` for every readable stored form."""

        titles: Dict[str, str] = {}
        for form_id, path in self.discover_forms().items():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable form schema at %s", path)
                continue
            title = payload.get("title") if isinstance(payload, dict) else None
            titles[form_id] = str(title or form_id)
        return titles

    def load(self, form_id: str) -> Dict[str, Any]:
        """Read the stored document for ``form_id``."""

        path = self.form_path(form_id)
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        logger.debug("Loaded form %s from %s", form_id, path)
        return payload

    def save(self, form_id: str, document: Mapping[str, Any]) -> SaveResult:
        """Write ``document``, creating the form directory when needed."""

        path = self.form_path(form_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
        except OSError as exc:
            logger.error("Could not save form %s to %s: %s", form_id, path, exc)
            return SaveResult(False, str(path), [str(exc)])
        logger.info("Saved form %s to %s", form_id, path)
        return SaveResult(True, str(path))


__all__ = [
    "FORM_SCHEMA_FILENAME",
    "FormStore",
    "LocalFormStore",
    "NEW_FORM",
    "SCHEMAS_ROOT",
    "SaveResult",
    "resolve_remote_form_path",
]
