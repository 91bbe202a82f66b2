from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union


_CURRENCY_CHARS_RE = re.compile(r"[^\d.,()+\-]")


def money_to_minor_units(value: Union[str, int, float, Decimal], digits: int = 2) -> int:
    """
    Convert a display/decimal amount into integer minor units (satang, cents, ...).

    Accepts values like:
    - "฿2,500.00"
    - "2500"
    - "$0.37"
    - "(12.34)"   (negative)
    - 1800.5      (floats go through ``str()`` so 0.1 stays 0.1)
    """
    if value is None:
        raise ValueError("money_to_minor_units: value is None")
    if isinstance(value, bool):
        raise ValueError("money_to_minor_units: bool is not a money value")

    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    else:
        s = value.strip()
        if not s:
            raise ValueError("money_to_minor_units: empty string")

        # Remove currency symbols/codes/spaces/commas
        s = _CURRENCY_CHARS_RE.sub("", s).replace(",", "").strip()

        # Handle parentheses as negative
        if s.startswith("(") and s.endswith(")"):
            s = "-" + s[1:-1].strip()

        try:
            dec = Decimal(s)
        except InvalidOperation as e:
            raise ValueError(f"money_to_minor_units: not a money value: {value!r}") from e

    scale = Decimal(10) ** digits
    return int((dec * scale).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def minor_units_to_money_str(amount: int, *, symbol: str = "฿", digits: int = 2) -> str:
    dec = Decimal(amount) / (Decimal(10) ** digits)
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(dec):,.{digits}f}"
