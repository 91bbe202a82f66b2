from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Literal, Optional, Sequence

from .models import CreditNote, CreditNoteStatus, LineItem, UsedCredit


logger = logging.getLogger(__name__)

HistoryDirection = Literal["all", "in", "out"]


def active_credit_notes(notes: Iterable[CreditNote], *, as_of: Optional[date] = None) -> list[CreditNote]:
    """
    Narrow notes down to the ones the allocation engine may draw from.

    When ``as_of`` is given, notes whose expiry date has already passed are dropped too,
    even if nobody has flipped their status to ``expired`` yet.
    """
    out: list[CreditNote] = []
    for n in notes:
        if n.status != CreditNoteStatus.ACTIVE:
            continue
        if as_of is not None and n.is_expired_on(as_of):
            logger.info("Credit note %s expired on %s; not offering it", n.id, n.expiry_date)
            continue
        out.append(n)
    return out


def students_in_cart(items: Iterable[LineItem]) -> list[str]:
    # De-dupe, preserve order.
    out: list[str] = []
    seen: set[str] = set()
    for item in items:
        if item.student_id in seen:
            continue
        out.append(item.student_id)
        seen.add(item.student_id)
    return out


def split_applicable(
    notes: Iterable[CreditNote],
    student_ids: Iterable[str],
) -> tuple[list[CreditNote], list[CreditNote]]:
    """
    Split notes into (applicable, non_applicable) for the students currently in the cart.
    Non-applicable notes belong to students with nothing in the cart; callers warn about them.
    """
    wanted = set(student_ids)
    applicable: list[CreditNote] = []
    non_applicable: list[CreditNote] = []
    for n in notes:
        (applicable if n.student_id in wanted else non_applicable).append(n)
    return applicable, non_applicable


def group_by_student(notes: Iterable[CreditNote]) -> dict[str, list[CreditNote]]:
    grouped: dict[str, list[CreditNote]] = {}
    for n in notes:
        grouped.setdefault(n.student_id, []).append(n)
    return {sid: sorted(group, key=lambda n: n.fifo_key()) for sid, group in grouped.items()}


def default_credit_note_selection(notes: Iterable[CreditNote], items: Sequence[LineItem]) -> frozenset[str]:
    """The cart starts with every applicable active note selected."""
    applicable, _ = split_applicable(active_credit_notes(notes), students_in_cart(items))
    return frozenset(n.id for n in applicable)


def is_partially_used(used: UsedCredit) -> bool:
    return 0 < used.consumed_minor < used.face_amount_minor


def academic_year_of(note: CreditNote) -> str:
    return note.academic_year or str(note.issued_at.year)


def academic_years(notes: Iterable[CreditNote]) -> list[str]:
    return sorted({academic_year_of(n) for n in notes}, reverse=True)


def filter_history(
    notes: Iterable[CreditNote],
    *,
    year: Optional[str] = None,
    direction: HistoryDirection = "all",
    student_id: Optional[str] = None,
) -> list[CreditNote]:
    """
    Filter credit note history the way the parent portal's history view does.

    ``year`` and ``student_id`` left as None mean "no filter".

    - ``direction="in"``: credit received and still available (active)
    - ``direction="out"``: credit already spent (used)
    """
    if direction not in ("all", "in", "out"):
        raise ValueError(f"filter_history: unknown direction {direction!r}")

    out: list[CreditNote] = []
    for n in notes:
        if year is not None and academic_year_of(n) != year:
            continue
        if direction == "in" and n.status != CreditNoteStatus.ACTIVE:
            continue
        if direction == "out" and n.status != CreditNoteStatus.USED:
            continue
        if student_id is not None and n.student_id != str(student_id):
            continue
        out.append(n)
    return out


def history_totals(notes: Iterable[CreditNote]) -> tuple[int, int]:
    """Return (total_in_minor, total_out_minor). Expired notes count towards neither."""
    total_in = 0
    total_out = 0
    for n in notes:
        if n.status == CreditNoteStatus.ACTIVE:
            total_in += n.amount_minor
        elif n.status == CreditNoteStatus.USED:
            total_out += n.amount_minor
    return total_in, total_out
