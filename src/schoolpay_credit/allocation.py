from __future__ import annotations

import logging
from collections import Counter
from typing import AbstractSet, Iterable, Sequence

from .errors import InvalidInputError
from .models import AllocationResult, AllocationSummary, CreditNote, LineItem, UsedCredit


logger = logging.getLogger(__name__)


def _duplicate_ids(ids: Iterable[str]) -> list[str]:
    return sorted(k for k, n in Counter(ids).items() if n > 1)


def _validate(
    line_items: Sequence[LineItem],
    credit_notes: Sequence[CreditNote],
    selected_item_ids: AbstractSet[str],
    selected_credit_note_ids: AbstractSet[str],
) -> None:
    negative_items = sorted(i.id for i in line_items if i.price_minor < 0)
    if negative_items:
        raise InvalidInputError(f"Line items with negative price: {', '.join(negative_items)}")

    negative_notes = sorted(n.id for n in credit_notes if n.amount_minor < 0)
    if negative_notes:
        raise InvalidInputError(f"Credit notes with negative amount: {', '.join(negative_notes)}")

    dup_items = _duplicate_ids(i.id for i in line_items)
    if dup_items:
        raise InvalidInputError(f"Duplicate line item ids: {', '.join(dup_items)}")

    dup_notes = _duplicate_ids(n.id for n in credit_notes)
    if dup_notes:
        raise InvalidInputError(f"Duplicate credit note ids: {', '.join(dup_notes)}")

    unknown_items = sorted(set(selected_item_ids) - {i.id for i in line_items})
    if unknown_items:
        raise InvalidInputError(f"Selected line item ids not in cart: {', '.join(unknown_items)}")

    unknown_notes = sorted(set(selected_credit_note_ids) - {n.id for n in credit_notes})
    if unknown_notes:
        raise InvalidInputError(f"Selected credit note ids not in credit note list: {', '.join(unknown_notes)}")


def allocate_for_student(
    student_id: str,
    student_total_minor: int,
    credit_notes: Iterable[CreditNote],
) -> AllocationResult:
    """
    Draw a single student's credit notes down against their total, oldest note first.

    Every note is listed in ``used_credits``; notes that were not needed this time
    show ``consumed_minor == 0``.
    """
    if student_total_minor < 0:
        raise InvalidInputError(f"Student {student_id} total is negative: {student_total_minor}")

    notes = sorted(credit_notes, key=lambda n: n.fifo_key())
    negative = sorted(n.id for n in notes if n.amount_minor < 0)
    if negative:
        raise InvalidInputError(f"Credit notes with negative amount: {', '.join(negative)}")

    foreign = sorted(n.id for n in notes if n.student_id != student_id)
    if foreign:
        raise InvalidInputError(
            f"Credit notes {', '.join(foreign)} do not belong to student {student_id}"
        )

    remaining_to_charge = student_total_minor
    used: list[UsedCredit] = []
    for note in notes:
        consumed = min(note.amount_minor, remaining_to_charge)
        used.append(
            UsedCredit(
                credit_note_id=note.id,
                face_amount_minor=note.amount_minor,
                consumed_minor=consumed,
            )
        )
        remaining_to_charge -= consumed

    credit_applied = student_total_minor - remaining_to_charge
    available = sum(n.amount_minor for n in notes)
    return AllocationResult(
        student_id=student_id,
        student_total_minor=student_total_minor,
        credit_applied_minor=credit_applied,
        remaining_credit_minor=available - credit_applied,
        used_credits=tuple(used),
    )


def allocate(
    line_items: Sequence[LineItem],
    credit_notes: Sequence[CreditNote],
    selected_item_ids: AbstractSet[str],
    selected_credit_note_ids: AbstractSet[str],
) -> AllocationSummary:
    """
    Compute how much of each student's selected credit offsets their selected items.

    Preconditions:
    - ``credit_notes`` has already been narrowed to active notes; status is not re-checked here.
    - Every selected id exists in its source list (otherwise ``InvalidInputError``).

    Credit never crosses students. Students without selected items get no entry in
    ``per_student``, even when some of their notes are selected.
    """
    _validate(line_items, credit_notes, selected_item_ids, selected_credit_note_ids)

    totals: dict[str, int] = {}
    for item in line_items:
        if item.id not in selected_item_ids:
            continue
        totals[item.student_id] = totals.get(item.student_id, 0) + item.price_minor

    notes_by_student: dict[str, list[CreditNote]] = {}
    for note in credit_notes:
        if note.id not in selected_credit_note_ids:
            continue
        notes_by_student.setdefault(note.student_id, []).append(note)

    per_student: dict[str, AllocationResult] = {}
    for student_id in sorted(totals):
        per_student[student_id] = allocate_for_student(
            student_id,
            totals[student_id],
            notes_by_student.get(student_id, []),
        )

    subtotal = sum(r.student_total_minor for r in per_student.values())
    credit_applied = sum(r.credit_applied_minor for r in per_student.values())
    remaining_credit = sum(r.remaining_credit_minor for r in per_student.values())

    inert = sorted(s for s in notes_by_student if s not in totals)
    if inert:
        logger.debug("Selected credit notes ignored for students without selected items: %s", ",".join(inert))

    summary = AllocationSummary(
        per_student=per_student,
        subtotal_minor=subtotal,
        total_credit_applied_minor=credit_applied,
        total_remaining_credit_minor=remaining_credit,
        final_total_minor=max(0, subtotal - credit_applied),
    )
    logger.debug(
        "Allocated credit (students=%d subtotal=%d credit_applied=%d final_total=%d)",
        len(per_student),
        summary.subtotal_minor,
        summary.total_credit_applied_minor,
        summary.final_total_minor,
    )
    return summary
