"""Structural edits that keep a form's ordering and rule references consistent.

Every public method checks its preconditions before touching the tree, so a
failing call leaves the form exactly as it was.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional, Sequence

from uad_forms.errors import CyclicRuleGraph, InvalidValue
from uad_forms.fields import (
    CHOICE_TYPES,
    DEFAULT_WIDTH,
    FIELD_TYPE_LABELS,
    FieldOption,
    Validator,
    coerce_value,
    default_value,
    ensure_field_type,
    ensure_validator,
    ensure_width,
)
from uad_forms.rules import UNARY_OPERATORS, Condition, Rule, check_rule_parts
from uad_forms.schema import Field, Form, Page, Section

logger = logging.getLogger(__name__)

RULE_ID_PATTERN = re.compile(r"^rule_(\d+)$")


class StructuralEditor:
    """Apply user intents to a :class:`~uad_forms.schema.Form`.

    ``on_change`` is called with the action name after each successful
    mutation; the editing session uses it to invalidate derived state.
    """

    def __init__(self, form: Form, on_change: Optional[Callable[[str], None]] = None) -> None:
        self.form = form
        self._on_change = on_change

    def _changed(self, action: str, target: str) -> None:
        """Log a successful mutation and notify the session."""

        logger.debug("%s %s on form %s", action, target, self.form.id)
        if self._on_change is not None:
            self._on_change(action)

    def _new_id(self, prefix: str) -> str:
        """Return a fresh ``<prefix>_<hex>`` id unused anywhere in the form."""

        existing = self.form.all_ids()
        while True:
            candidate = f"{prefix}_{uuid.uuid4().hex[:12]}"
            if candidate not in existing:
                return candidate

    def _next_rule_id(self) -> str:
        """Return the id following the highest numbered rule."""

        numbers = [0]
        for rule in self.form.rules:
            match = RULE_ID_PATTERN.match(rule.id)
            if match:
                numbers.append(int(match.group(1)))
        return f"rule_{max(numbers) + 1:05d}"

    # Pages -----------------------------------------------------------------

    def rename_form(self, title: str) -> Form:
        """Change the form title."""

        self.form.title = title
        self._changed("rename_form", self.form.id)
        return self.form

    def add_page(self, title: str = "") -> Page:
        """Append an empty page, numbering its title when none is given."""

        page = Page(self._new_id("page"), title or f"Page {len(self.form.pages) + 1}")
        self.form._insert_page(len(self.form.pages), page)
        self._changed("add_page", page.id)
        return page

    def rename_page(self, page_id: str, title: str) -> Page:
        """Change the title of ``page_id``."""

        page = self.form.get_page(page_id)
        page.title = title
        self._changed("rename_page", page_id)
        return page

    def delete_page(self, page_id: str) -> Page:
        """Remove a page with its sections, fields and their rules."""

        index = self.form.index_of(page_id)
        page = self.form.pages[index]
        doomed = [item.id for section in page.sections for item in section.fields]
        self._drop_rules_for(doomed)
        self.form._remove_page(index)
        self._changed("delete_page", page_id)
        return page

    def move_page_up(self, page_id: str) -> bool:
        """Swap a page with its predecessor; ``False`` when already first."""

        return self._move_page(page_id, -1)

    def move_page_down(self, page_id: str) -> bool:
        """Swap a page with its successor; ``False`` when already last."""

        return self._move_page(page_id, 1)

    def _move_page(self, page_id: str, offset: int) -> bool:
        index = self.form.index_of(page_id)
        target = index + offset
        if not 0 <= target < len(self.form.pages):
            return False
        self.form._swap_pages(index, target)
        self._changed("move_page", page_id)
        return True

    # Sections --------------------------------------------------------------

    def add_section(self, page_id: str, title: str = "") -> Section:
        """Append an empty section to ``page_id``."""

        page = self.form.get_page(page_id)
        section = Section(self._new_id("section"), title or f"Section {len(page.sections) + 1}")
        page._insert_section(len(page.sections), section)
        self._changed("add_section", section.id)
        return section

    def rename_section(self, section_id: str, title: str) -> Section:
        """Change the title of ``section_id``."""

        section = self.form.get_section(section_id)
        section.title = title
        self._changed("rename_section", section_id)
        return section

    def delete_section(self, section_id: str) -> Section:
        """Remove a section with its fields and their rules."""

        page, index = self.form.locate_section(section_id)
        section = page.sections[index]
        self._drop_rules_for([item.id for item in section.fields])
        page._remove_section(index)
        self._changed("delete_section", section_id)
        return section

    def move_section_up(self, section_id: str) -> bool:
        """Swap a section with its predecessor within the page."""

        return self._move_section(section_id, -1)

    def move_section_down(self, section_id: str) -> bool:
        """Swap a section with its successor within the page."""

        return self._move_section(section_id, 1)

    def _move_section(self, section_id: str, offset: int) -> bool:
        page, index = self.form.locate_section(section_id)
        target = index + offset
        if not 0 <= target < len(page.sections):
            return False
        page._swap_sections(index, target)
        self._changed("move_section", section_id)
        return True

    # Fields ----------------------------------------------------------------

    def add_field(
        self,
        section_id: str,
        field_type: str,
        width: str = DEFAULT_WIDTH,
        label: Optional[str] = None,
    ) -> Field:
        """Append a field holding the default value for ``field_type``."""

        section = self.form.get_section(section_id)
        ensure_field_type(field_type)
        ensure_width(width)
        item = Field(
            id=self._new_id("field"),
            type=field_type,
            label=label if label is not None else f"New {FIELD_TYPE_LABELS[field_type].lower()} field",
            width=width,
        )
        section._insert_field(len(section.fields), item)
        self._changed("add_field", item.id)
        return item

    def update_field(
        self,
        field_id: str,
        *,
        label: Optional[str] = None,
        options: Optional[Sequence[FieldOption]] = None,
        validators: Optional[Sequence[Validator]] = None,
    ) -> Field:
        """Change a field's label, options or validators."""

        _, section, index = self.form.locate_field(field_id)
        item = section.fields[index]
        changes: dict = {}
        if label is not None:
            changes["label"] = label
        if options is not None:
            if item.type not in CHOICE_TYPES:
                raise InvalidValue(f"Options only apply to select and radio fields, not {item.type}")
            option_ids = [option.id for option in options]
            if len(set(option_ids)) != len(option_ids):
                raise InvalidValue("Option ids must be unique")
            changes["options"] = tuple(options)
            if item.value.raw is not None and item.value.raw not in option_ids:
                changes["value"] = default_value(item.type)
        if validators is not None:
            changes["validators"] = tuple(ensure_validator(validator) for validator in validators)
        if not changes:
            return item

        updated = replace(item, **changes)
        section._replace_field(index, updated)
        self._changed("update_field", field_id)
        return updated

    def resize_field(self, field_id: str, width: str) -> Field:
        """Change the grid width of ``field_id``."""

        _, section, index = self.form.locate_field(field_id)
        updated = replace(section.fields[index], width=ensure_width(width))
        section._replace_field(index, updated)
        self._changed("resize_field", field_id)
        return updated

    def set_field_value(self, field_id: str, raw: Any) -> Field:
        """Store ``raw`` as the value of ``field_id`` after coercing it to the field type."""

        _, section, index = self.form.locate_field(field_id)
        item = section.fields[index]
        updated = replace(item, value=coerce_value(item.type, raw, item.options))
        section._replace_field(index, updated)
        self._changed("set_field_value", field_id)
        return updated

    def delete_field(self, field_id: str) -> Field:
        """Remove a field and every rule that uses it as source or target."""

        _, section, index = self.form.locate_field(field_id)
        self._drop_rules_for([field_id])
        removed = section._remove_field(index)
        self._changed("delete_field", field_id)
        return removed

    def duplicate_field(self, field_id: str) -> Field:
        """Insert a copy of ``field_id`` right after it.

        The copy gets a fresh id and no rules; rules on the original are not
        carried over.
        """

        _, section, index = self.form.locate_field(field_id)
        original = section.fields[index]
        copy = replace(
            original,
            id=self._new_id("field"),
            label=f"{original.label} (copy)" if original.label else "",
            rule_refs=frozenset(),
        )
        section._insert_field(index + 1, copy)
        self._changed("duplicate_field", copy.id)
        return copy

    def move_field_up(self, field_id: str) -> bool:
        """Swap a field with its predecessor; ``False`` when already first."""

        return self._move_field(field_id, -1)

    def move_field_down(self, field_id: str) -> bool:
        """Swap a field with its successor; ``False`` when already last."""

        return self._move_field(field_id, 1)

    def _move_field(self, field_id: str, offset: int) -> bool:
        _, section, index = self.form.locate_field(field_id)
        target = index + offset
        if not 0 <= target < len(section.fields):
            return False
        section._swap_fields(index, target)
        self._changed("move_field", field_id)
        return True

    def reorder_within_section(self, section_id: str, field_id: str, new_index: int) -> int:
        """Move ``field_id`` to ``new_index`` within its section.

        ``new_index`` is clamped to the bounds of the section. Returns the
        position the field ends up at.
        """

        section = self.form.get_section(section_id)
        index = section.index_of(field_id)
        target = max(0, min(new_index, len(section.fields) - 1))
        if target == index:
            return index
        item = section._remove_field(index)
        section._insert_field(target, item)
        self._changed("reorder_field", field_id)
        return target

    # Rules -----------------------------------------------------------------

    def add_rule(
        self,
        source_field_id: str,
        operator: str,
        value: Any,
        target_field_id: str,
        effect: str,
    ) -> Rule:
        """Add a rule, refusing self-loops and edges that would close a cycle."""

        check_rule_parts(operator, effect)
        self.form.get_field(source_field_id)
        self.form.get_field(target_field_id)
        if self.form.rules.would_create_cycle(source_field_id, target_field_id):
            raise CyclicRuleGraph([source_field_id, target_field_id])

        condition = Condition(operator, None if operator in UNARY_OPERATORS else value)
        rule = Rule(self._next_rule_id(), source_field_id, condition, target_field_id, effect)
        self.form.rules.add(rule)
        self._update_rule_refs(target_field_id, add=[rule.id])
        self._changed("add_rule", rule.id)
        return rule

    def remove_rule(self, rule_id: str) -> Rule:
        """Delete a rule and drop it from its target's ``rule_refs``."""

        rule = self.form.rules.remove(rule_id)
        if self.form.has_field(rule.target_field_id):
            self._update_rule_refs(rule.target_field_id, discard=[rule.id])
        self._changed("remove_rule", rule_id)
        return rule

    def _drop_rules_for(self, field_ids: Iterable[str]) -> List[Rule]:
        """Remove rules touching any of ``field_ids``, keeping references in sync."""

        doomed_fields = set(field_ids)
        doomed_rules = {
            rule.id: rule for field_id in doomed_fields for rule in self.form.rules.referencing(field_id)
        }
        for rule in doomed_rules.values():
            self.form.rules.remove(rule.id)
            if rule.target_field_id not in doomed_fields:
                self._update_rule_refs(rule.target_field_id, discard=[rule.id])
        if doomed_rules:
            logger.info("Removed %d rule(s) referencing deleted fields", len(doomed_rules))
        return list(doomed_rules.values())

    def _update_rule_refs(
        self,
        field_id: str,
        add: Sequence[str] = (),
        discard: Sequence[str] = (),
    ) -> None:
        """Add and discard rule ids on the ``rule_refs`` of ``field_id``."""

        _, section, index = self.form.locate_field(field_id)
        item = section.fields[index]
        refs = (set(item.rule_refs) | set(add)) - set(discard)
        section._replace_field(index, replace(item, rule_refs=frozenset(refs)))


__all__ = ["StructuralEditor"]
