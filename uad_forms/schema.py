"""In-memory tree of a form: pages, sections and fields in display order."""

from __future__ import annotations

from dataclasses import dataclass, field as dc_field
from typing import FrozenSet, Iterator, List, Optional, Set, Tuple

from uad_forms.errors import NotFound
from uad_forms.fields import (
    DEFAULT_WIDTH,
    FieldOption,
    FieldValue,
    Validator,
    default_value,
)
from uad_forms.rules import RuleGraph


@dataclass(frozen=True)
class Field:
    """A single input. Instances are immutable; the editor swaps in copies."""

    id: str
    type: str
    label: str = ""
    width: str = DEFAULT_WIDTH
    value: Optional[FieldValue] = None
    validators: Tuple[Validator, ...] = ()
    options: Tuple[FieldOption, ...] = ()
    rule_refs: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.value is None:
            object.__setattr__(self, "value", default_value(self.type))

    @property
    def declares_required(self) -> bool:
        return any(validator.kind == "required" for validator in self.validators)


@dataclass
class Section:
    id: str
    title: str = ""
    _fields: List[Field] = dc_field(default_factory=list, repr=False)

    @property
    def fields(self) -> Tuple[Field, ...]:
        return tuple(self._fields)

    def index_of(self, field_id: str) -> int:
        for index, item in enumerate(self._fields):
            if item.id == field_id:
                return index
        raise NotFound("Field", field_id)

    def _insert_field(self, index: int, item: Field) -> None:
        self._fields.insert(index, item)

    def _remove_field(self, index: int) -> Field:
        return self._fields.pop(index)

    def _replace_field(self, index: int, item: Field) -> None:
        self._fields[index] = item

    def _swap_fields(self, first: int, second: int) -> None:
        _swap(self._fields, first, second)


@dataclass
class Page:
    id: str
    title: str = ""
    _sections: List[Section] = dc_field(default_factory=list, repr=False)

    @property
    def sections(self) -> Tuple[Section, ...]:
        return tuple(self._sections)

    def index_of(self, section_id: str) -> int:
        for index, section in enumerate(self._sections):
            if section.id == section_id:
                return index
        raise NotFound("Section", section_id)

    def _insert_section(self, index: int, section: Section) -> None:
        self._sections.insert(index, section)

    def _remove_section(self, index: int) -> Section:
        return self._sections.pop(index)

    def _swap_sections(self, first: int, second: int) -> None:
        _swap(self._sections, first, second)


@dataclass
class Form:
    """Root aggregate owning every page and the rule table."""

    id: str
    title: str = ""
    _pages: List[Page] = dc_field(default_factory=list, repr=False)
    rules: RuleGraph = dc_field(default_factory=RuleGraph, repr=False)

    @property
    def pages(self) -> Tuple[Page, ...]:
        return tuple(self._pages)

    def index_of(self, page_id: str) -> int:
        for index, page in enumerate(self._pages):
            if page.id == page_id:
                return index
        raise NotFound("Page", page_id)

    def get_page(self, page_id: str) -> Page:
        return self._pages[self.index_of(page_id)]

    def locate_section(self, section_id: str) -> Tuple[Page, int]:
        """Return the owning page and position of ``section_id``."""

        for page in self._pages:
            for index, section in enumerate(page._sections):
                if section.id == section_id:
                    return page, index
        raise NotFound("Section", section_id)

    def get_section(self, section_id: str) -> Section:
        page, index = self.locate_section(section_id)
        return page._sections[index]

    def locate_field(self, field_id: str) -> Tuple[Page, Section, int]:
        """Return the owning page, owning section and position of ``field_id``."""

        for page in self._pages:
            for section in page._sections:
                for index, item in enumerate(section._fields):
                    if item.id == field_id:
                        return page, section, index
        raise NotFound("Field", field_id)

    def get_field(self, field_id: str) -> Field:
        _, section, index = self.locate_field(field_id)
        return section._fields[index]

    def has_field(self, field_id: str) -> bool:
        return any(item.id == field_id for item in self.iter_fields())

    def iter_sections(self) -> Iterator[Section]:
        for page in self._pages:
            yield from page._sections

    def iter_fields(self) -> Iterator[Field]:
        """Yield every field in document order."""

        for section in self.iter_sections():
            yield from section._fields

    def field_ids(self) -> List[str]:
        return [item.id for item in self.iter_fields()]

    def all_ids(self) -> Set[str]:
        ids = {self.id}
        for page in self._pages:
            ids.add(page.id)
            for section in page._sections:
                ids.add(section.id)
                ids.update(item.id for item in section._fields)
        return ids

    def _insert_page(self, index: int, page: Page) -> None:
        self._pages.insert(index, page)

    def _remove_page(self, index: int) -> Page:
        return self._pages.pop(index)

    def _swap_pages(self, first: int, second: int) -> None:
        _swap(self._pages, first, second)


def _swap(items: list, first: int, second: int) -> None:
    items[first], items[second] = items[second], items[first]


__all__ = ["Field", "Form", "Page", "Section"]
