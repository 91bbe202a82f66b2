from .allocation import allocate, allocate_for_student
from .errors import InvalidInputError
from .models import (
    AllocationResult,
    AllocationSummary,
    CreditNote,
    CreditNoteStatus,
    LineItem,
    UsedCredit,
)

__all__ = [
    "allocate",
    "allocate_for_student",
    "InvalidInputError",
    "AllocationResult",
    "AllocationSummary",
    "CreditNote",
    "CreditNoteStatus",
    "LineItem",
    "UsedCredit",
]
