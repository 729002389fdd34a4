from __future__ import annotations

import numbers
import re
from decimal import ROUND_HALF_UP, Decimal, getcontext

getcontext().prec = 28

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Commas are only accepted as thousands separators: 1,234 or 12,345,678.90
_GROUPED = re.compile(r"[+-]?\d{1,3}(,\d{3})+(\.\d*)?")


def to_decimal(value: object) -> Decimal:
    """Coerce a user-supplied number into a Decimal (floats go through str)."""
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        d = Decimal(str(value))
    elif isinstance(value, numbers.Integral):
        d = Decimal(int(value))
    elif isinstance(value, str):
        s = value.strip()
        if "," in s:
            if not _GROUPED.fullmatch(s):
                raise ValueError(f"not a number: {value!r}")
            s = s.replace(",", "")
        try:
            d = Decimal(s)
        except Exception as e:
            raise ValueError(f"not a number: {value!r}") from e
    else:
        raise ValueError(f"not a number: {value!r}")
    if not d.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return d


def round_decimal(value: Decimal, places: int = 2) -> Decimal:
    return value.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return ZERO
    return part / whole * HUNDRED
