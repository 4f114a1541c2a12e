"""Pack fields into rows of a 12-column grid."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from uad_forms.fields import GRID_COLUMNS, column_span
from uad_forms.schema import Field, Form


@dataclass(frozen=True)
class LayoutSlot:
    """Where a field lands on the grid."""

    field_id: str
    grid_column_span: int
    row_index: int
    column_start: int = 0


def resolve_section(fields: Sequence[Field]) -> List[LayoutSlot]:
    """Place ``fields`` greedily, wrapping before a row would exceed the grid.

    The result depends only on the order and widths of ``fields``.
    """

    slots: List[LayoutSlot] = []
    row_index = 0
    row_total = 0
    for item in fields:
        span = column_span(item.width)
        if row_total and row_total + span > GRID_COLUMNS:
            row_index += 1
            row_total = 0
        slots.append(LayoutSlot(item.id, span, row_index, row_total))
        row_total += span
    return slots


def resolve_form(form: Form) -> Dict[str, List[LayoutSlot]]:
    """Return slots for every section of ``form`` keyed by section id."""

    return {section.id: resolve_section(section.fields) for section in form.iter_sections()}


def group_rows(slots: Iterable[LayoutSlot]) -> List[List[LayoutSlot]]:
    """Group ``slots`` into rows for rendering."""

    rows: List[List[LayoutSlot]] = []
    for slot in slots:
        while len(rows) <= slot.row_index:
            rows.append([])
        rows[slot.row_index].append(slot)
    return rows


__all__ = ["LayoutSlot", "group_rows", "resolve_form", "resolve_section"]
