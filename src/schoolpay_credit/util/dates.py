from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Union

from dateutil import parser as date_parser


def parse_timestamp(value: Union[str, datetime, date]) -> datetime:
    """
    Parse issuance timestamps like:
    - "2024-11-15T10:30:00"
    - "2024-11-15 10:30"
    - "2024-11-15T10:30:00+07:00"

    The result is always timezone-aware; naive values are taken as UTC so
    notes from different sources still order consistently.
    """
    if value is None:
        raise ValueError("parse_timestamp: value is None")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        s = value.strip()
        if not s:
            raise ValueError("parse_timestamp: empty string")
        dt = date_parser.isoparse(s) if "T" in s else date_parser.parse(s, yearfirst=True)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_iso_date(value: str) -> date:
    if value is None:
        raise ValueError("parse_iso_date: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_iso_date: empty string")
    return date_parser.parse(s, yearfirst=True, dayfirst=False).date()
