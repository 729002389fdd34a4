from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

import pandas as pd

from lease_pricing.money import to_decimal

logger = logging.getLogger(__name__)

RATE_COLUMNS = ("min", "max", "coefficient")


@dataclass(frozen=True)
class RateBracket:
    # Inclusive on both ends: min <= financed amount <= max.
    min: Decimal
    max: Decimal
    coefficient: Decimal  # monthly payment as a percentage of the financed amount

    def contains(self, amount: Decimal) -> bool:
        return self.min <= amount <= self.max


@dataclass(frozen=True)
class RateTable:
    id: str
    name: str
    ranges: tuple[RateBracket, ...] = ()


def _bracket(lo: str, hi: str, coef: str) -> RateBracket:
    return RateBracket(min=Decimal(lo), max=Decimal(hi), coefficient=Decimal(coef))


DEFAULT_RATE_TABLE = RateTable(
    id="default",
    name="Default leaser (36 months)",
    ranges=(
        _bracket("500", "2500", "3.55"),
        _bracket("2500.01", "5000", "3.27"),
        _bracket("5000.01", "12500", "3.18"),
        _bracket("12500.01", "25000", "3.17"),
        _bracket("25000.01", "50000", "3.16"),
        _bracket("50000.01", "100000", "3.15"),
    ),
)


def resolve_rate_table(rate_table: RateTable | None) -> RateTable:
    if rate_table is None or not rate_table.ranges:
        return DEFAULT_RATE_TABLE
    return rate_table


def find_coefficient(financed_amount: Decimal, rate_table: RateTable | None = None) -> Decimal:
    """
    Coefficient of the first bracket containing `financed_amount`.

    Never raises:
    - no table / empty table -> first bracket of DEFAULT_RATE_TABLE
    - no bracket matches -> first bracket of the table in use
    """
    table = resolve_rate_table(rate_table)
    for bracket in table.ranges:
        if bracket.contains(financed_amount) and bracket.coefficient > 0:
            return bracket.coefficient
    fallback = table.ranges[0].coefficient
    logger.debug("no bracket of %r covers %s; falling back to %s", table.id, financed_amount, fallback)
    return fallback


def validate_ranges(ranges: tuple[RateBracket, ...]) -> None:
    if not ranges:
        raise ValueError("rate table needs at least one bracket")
    prev: RateBracket | None = None
    for i, b in enumerate(ranges):
        if b.min < 0:
            raise ValueError(f"bracket {i}: min must be >= 0")
        if b.min > b.max:
            raise ValueError(f"bracket {i}: min must be <= max")
        if b.coefficient <= 0:
            raise ValueError(f"bracket {i}: coefficient must be > 0")
        if prev is not None and b.min <= prev.max:
            raise ValueError(f"bracket {i}: must start above the previous bracket's max ({prev.max})")
        prev = b


def rate_table_from_frame(df: pd.DataFrame, *, id: str, name: str | None = None) -> RateTable:
    missing = [c for c in RATE_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"rate table is missing columns: {', '.join(missing)}")
    if df[list(RATE_COLUMNS)].isna().any().any():
        raise ValueError("rate table has empty cells")

    ranges = tuple(
        RateBracket(
            min=to_decimal(row["min"]),
            max=to_decimal(row["max"]),
            coefficient=to_decimal(row["coefficient"]),
        )
        for _, row in df.iterrows()
    )
    validate_ranges(ranges)
    return RateTable(id=id, name=name or id, ranges=ranges)


def load_rate_table(path: str, *, id: str | None = None, name: str | None = None) -> RateTable:
    # Read as text so bracket bounds keep their exact decimal form.
    df = pd.read_csv(path, dtype=str)
    table = rate_table_from_frame(df, id=id or path, name=name)
    logger.info("loaded rate table %r with %d brackets", table.id, len(table.ranges))
    return table


def append_bracket(rate_table: RateTable, width: Decimal = Decimal("5000")) -> RateTable:
    """
    Extend a table the way the leaser editor does: the new bracket starts one cent
    above the last max and copies the last coefficient.
    """
    if not rate_table.ranges:
        return RateTable(
            id=rate_table.id,
            name=rate_table.name,
            ranges=(RateBracket(min=Decimal("0"), max=width, coefficient=Decimal("0")),),
        )
    last = rate_table.ranges[-1]
    nxt = RateBracket(min=last.max + Decimal("0.01"), max=last.max + width, coefficient=last.coefficient)
    return RateTable(id=rate_table.id, name=rate_table.name, ranges=rate_table.ranges + (nxt,))
