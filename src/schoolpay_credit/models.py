from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .util.dates import parse_iso_date, parse_timestamp


class CreditNoteStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


def _coerce_id(value: object) -> str:
    # Source systems hand out numeric student ids; keep everything as strings.
    if value is None:
        raise ValueError("id is required")
    s = str(value).strip()
    if not s:
        raise ValueError("id must not be empty")
    return s


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    student_id: str
    price_minor: int

    # Display metadata; never used in calculations.
    name: str = ""
    kind: Literal["invoice", "course", "activity", "tuition"] = "course"
    is_mandatory: bool = False

    @field_validator("id", "student_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: object) -> str:
        return _coerce_id(v)


class CreditNote(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    student_id: str
    amount_minor: int
    issued_at: datetime
    status: CreditNoteStatus = CreditNoteStatus.ACTIVE

    details: str = ""
    expiry_date: Optional[date] = None
    used_at: Optional[datetime] = None
    used_for: str = ""
    academic_year: str = ""

    @field_validator("id", "student_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v: object) -> str:
        return _coerce_id(v)

    @field_validator("issued_at", "used_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, v: object) -> object:
        if v is None or v == "":
            return None
        if isinstance(v, (str, datetime, date)):
            return parse_timestamp(v)
        return v

    @field_validator("expiry_date", mode="before")
    @classmethod
    def _parse_expiry(cls, v: object) -> object:
        if v is None or v == "":
            return None
        if isinstance(v, str):
            return parse_iso_date(v)
        return v

    def is_expired_on(self, day: date) -> bool:
        return self.expiry_date is not None and self.expiry_date < day

    def fifo_key(self) -> tuple[datetime, str]:
        # Oldest first; equal timestamps fall back to id order so results stay deterministic.
        return (self.issued_at, self.id)


class UsedCredit(BaseModel):
    model_config = ConfigDict(frozen=True)

    credit_note_id: str
    face_amount_minor: int
    consumed_minor: int


class AllocationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    student_id: str
    student_total_minor: int
    credit_applied_minor: int
    remaining_credit_minor: int
    used_credits: tuple[UsedCredit, ...] = ()

    @property
    def amount_due_minor(self) -> int:
        return self.student_total_minor - self.credit_applied_minor


class AllocationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    per_student: dict[str, AllocationResult] = Field(default_factory=dict)
    subtotal_minor: int = 0
    total_credit_applied_minor: int = 0
    total_remaining_credit_minor: int = 0
    final_total_minor: int = 0
