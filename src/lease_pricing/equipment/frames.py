from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable

import pandas as pd

from lease_pricing.equipment.models import DEFAULT_MARGIN, EquipmentLine, new_id
from lease_pricing.financing.payment import calculate_financed_amount, with_monthly_payment
from lease_pricing.money import to_decimal
from lease_pricing.rates.table import RateTable

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("title", "purchase_price")


def _cell(row: pd.Series, col: str) -> object | None:
    if col not in row.index:
        return None
    v = row[col]
    if v is None or (isinstance(v, float) and pd.isna(v)) or (isinstance(v, str) and not v.strip()):
        return None
    return v


def lines_from_frame(df: pd.DataFrame, rate_table: RateTable | None) -> list[EquipmentLine]:
    """
    Build equipment lines from a frame with at least `title` and `purchase_price`.

    Missing quantity defaults to 1, missing margin to 20; a missing monthly
    payment is computed from the rate table.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"equipment frame is missing columns: {', '.join(missing)}")

    lines: list[EquipmentLine] = []
    for i, (_, row) in enumerate(df.iterrows()):
        title = _cell(row, "title")
        price = _cell(row, "purchase_price")
        if title is None or price is None:
            raise ValueError(f"row {i}: title and purchase_price are required")
        try:
            purchase_price = to_decimal(price)
            raw_qty = _cell(row, "quantity")
            qty = to_decimal(raw_qty) if raw_qty is not None else Decimal(1)
            if qty != qty.to_integral_value():
                raise ValueError(f"quantity must be a whole number, got {raw_qty!r}")
            quantity = int(qty)
            margin = to_decimal(_cell(row, "margin")) if _cell(row, "margin") is not None else DEFAULT_MARGIN
        except ValueError as e:
            raise ValueError(f"row {i}: {e}") from e
        if purchase_price < 0:
            raise ValueError(f"row {i}: purchase_price must be >= 0")
        if quantity < 1:
            raise ValueError(f"row {i}: quantity must be >= 1")

        line = EquipmentLine(
            id=str(_cell(row, "id") or new_id()),
            title=str(title),
            purchase_price=purchase_price,
            quantity=quantity,
            margin=margin,
        )
        payment = _cell(row, "monthly_payment")
        if payment is None:
            line = with_monthly_payment(line, rate_table)
        else:
            line = replace(line, monthly_payment=to_decimal(payment))
        lines.append(line)
    return lines


def load_equipment_csv(path: str, rate_table: RateTable | None) -> list[EquipmentLine]:
    df = pd.read_csv(path, dtype=str)
    lines = lines_from_frame(df, rate_table)
    logger.info("loaded %d equipment lines from %s", len(lines), path)
    return lines


def lines_to_frame(lines: Iterable[EquipmentLine]) -> pd.DataFrame:
    rows = []
    for ln in lines:
        financed = calculate_financed_amount(ln.purchase_price, ln.margin)
        rows.append(
            {
                "id": ln.id,
                "title": ln.title,
                "quantity": ln.quantity,
                "purchase_price": float(ln.purchase_price),
                "margin": float(ln.margin),
                "financed_amount": float(financed),
                "monthly_payment": float(ln.monthly_payment),
                "monthly_total": float(ln.monthly_payment * ln.quantity),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "id",
            "title",
            "quantity",
            "purchase_price",
            "margin",
            "financed_amount",
            "monthly_payment",
            "monthly_total",
        ],
    )
