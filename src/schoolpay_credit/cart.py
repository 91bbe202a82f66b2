from __future__ import annotations

from typing import AbstractSet, Iterable, Sequence

from .models import LineItem


def toggle_selection(selected: AbstractSet[str], item_id: str) -> frozenset[str]:
    if item_id in selected:
        return frozenset(s for s in selected if s != item_id)
    return frozenset(selected) | {item_id}


def toggle_all(selected: AbstractSet[str], items: Sequence[LineItem]) -> frozenset[str]:
    """Select everything, unless everything is already selected, in which case clear."""
    all_ids = frozenset(i.id for i in items)
    if all_ids and all_ids <= set(selected):
        return frozenset()
    return all_ids


def selected_line_items(items: Iterable[LineItem], selected: AbstractSet[str]) -> list[LineItem]:
    return [i for i in items if i.id in selected]


def can_checkout(selected: AbstractSet[str]) -> bool:
    return len(selected) > 0


def group_items_by_student(items: Iterable[LineItem]) -> dict[str, list[LineItem]]:
    grouped: dict[str, list[LineItem]] = {}
    for item in items:
        grouped.setdefault(item.student_id, []).append(item)
    return grouped
