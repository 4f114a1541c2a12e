"""Per-session editing context tying the form, editor and derived views together."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from uad_forms.editor import StructuralEditor
from uad_forms.form_store import NEW_FORM, FormStore, SaveResult, _NewForm
from uad_forms.layout import LayoutSlot, resolve_form
from uad_forms.rule_engine import EffectiveState, Resolution, evaluate
from uad_forms.schema import Form, Page
from uad_forms.serialization import form_from_dict, form_to_dict
from uad_forms.validation import validate_values

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedForm:
    """The form together with everything derived from it at one revision."""

    revision: int
    form: Form
    layout: Dict[str, List[LayoutSlot]]
    resolution: Resolution
    errors: Dict[str, List[str]]

    @property
    def states(self) -> Dict[str, EffectiveState]:
        return self.resolution.states


class EditingSession:
    """Explicit context for one user editing one form.

    Edits go through :attr:`editor`; each one bumps :attr:`revision`, which
    discards the derived view so the next :meth:`resolve` sees exactly the
    tree the edit left behind.
    """

    def __init__(
        self,
        form: Form,
        store: Optional[FormStore] = None,
        *,
        reset_on_hide: bool = False,
    ) -> None:
        self.form = form
        self.store = store
        self.reset_on_hide = reset_on_hide
        self.revision = 0
        self.saved_revision: Optional[int] = None
        self._resolved: Optional[ResolvedForm] = None
        self.editor = StructuralEditor(form, on_change=self._bump)

    @classmethod
    def new(
        cls,
        title: str = "Untitled form",
        store: Optional[FormStore] = None,
        **options: Any,
    ) -> "EditingSession":
        """Start a session on a fresh form holding one empty page."""

        form = Form(f"form_{uuid.uuid4().hex[:12]}", title)
        form._insert_page(0, Page(f"page_{uuid.uuid4().hex[:12]}", "Page 1"))
        return cls(form, store, **options)

    @classmethod
    def open(
        cls,
        store: FormStore,
        form_id: Union[str, _NewForm],
        **options: Any,
    ) -> "EditingSession":
        """Load ``form_id`` from ``store``, or start a new form for ``NEW_FORM``."""

        if form_id is NEW_FORM or isinstance(form_id, _NewForm):
            return cls.new(store=store, **options)
        form = form_from_dict(store.load(form_id))
        session = cls(form, store, **options)
        session.saved_revision = session.revision
        return session

    @property
    def dirty(self) -> bool:
        return self.saved_revision != self.revision

    def _bump(self, action: str) -> None:
        self.revision += 1
        self._resolved = None

    def set_reset_on_hide(self, enabled: bool) -> None:
        """Switch the hidden-value policy; derived state is recomputed on next resolve."""

        if enabled != self.reset_on_hide:
            self.reset_on_hide = enabled
            self._resolved = None

    def resolve(self) -> ResolvedForm:
        """Return layout, effective states and validation errors for the current revision.

        Raises :class:`~uad_forms.errors.CyclicRuleGraph` or
        :class:`~uad_forms.errors.OrphanRuleReference` without caching anything.
        """

        if self._resolved is not None and self._resolved.revision == self.revision:
            return self._resolved
        resolution = evaluate(self.form, reset_on_hide=self.reset_on_hide)
        resolved = ResolvedForm(
            revision=self.revision,
            form=self.form,
            layout=resolve_form(self.form),
            resolution=resolution,
            errors=validate_values(self.form, resolution),
        )
        self._resolved = resolved
        return resolved

    def snapshot(self) -> Dict[str, Any]:
        return form_to_dict(self.form)

    def _require_store(self) -> FormStore:
        if self.store is None:
            raise RuntimeError("This editing session has no form store configured.")
        return self.store

    def save(self) -> SaveResult:
        store = self._require_store()
        revision = self.revision
        result = store.save(self.form.id, self.snapshot())
        if result.success:
            self.saved_revision = revision
        return result

    async def save_async(self) -> SaveResult:
        """Save a snapshot taken now; edits made while awaiting are not included."""

        store = self._require_store()
        revision = self.revision
        document = self.snapshot()
        logger.debug("Saving form %s at revision %d", self.form.id, revision)
        result = await asyncio.to_thread(store.save, self.form.id, document)
        if result.success and (self.saved_revision is None or revision > self.saved_revision):
            self.saved_revision = revision
        return result


__all__ = ["EditingSession", "ResolvedForm"]
