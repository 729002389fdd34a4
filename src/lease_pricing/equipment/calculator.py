from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Any

from lease_pricing.equipment.models import CalculatedMargin, EquipmentLine, new_line
from lease_pricing.financing.payment import (
    MonthlyPayment,
    calculate_margin_from_monthly_payment,
    calculate_monthly_payment,
)
from lease_pricing.fleet.adjustment import GlobalMarginAdjustment, calculate_global_margin_adjustment
from lease_pricing.money import ZERO, round_decimal, to_decimal
from lease_pricing.rates.table import RateTable, resolve_rate_table

logger = logging.getLogger(__name__)

_DRAFT_FIELDS = ("title", "purchase_price", "quantity", "margin")


class Mode(str, Enum):
    IDLE = "idle"  # fresh draft, nothing being edited
    EDITING = "editing"  # draft was loaded from a committed line


class EquipmentCalculator:
    """
    One draft line plus an ordered list of committed lines.

    Derived values (monthly payment, solved margin, fleet adjustment) are
    computed when read, so they always reflect the current draft, list, rate
    table and adapt flag.
    """

    def __init__(self, rate_table: RateTable | None = None) -> None:
        self.rate_table = resolve_rate_table(rate_table)
        self.draft: EquipmentLine = new_line()
        self.target_monthly_payment: Decimal = ZERO
        self.adapt_monthly_payment = False
        self.editing_id: str | None = None
        self._lines: dict[str, EquipmentLine] = {}
        # Last forward inputs and result; the table is compared by value.
        self._last_forward: tuple[tuple[Decimal, Decimal, RateTable], MonthlyPayment] | None = None

    # -- state ---------------------------------------------------------------

    @property
    def mode(self) -> Mode:
        return Mode.EDITING if self.editing_id is not None else Mode.IDLE

    @property
    def lines(self) -> list[EquipmentLine]:
        return list(self._lines.values())

    def get_line(self, line_id: str) -> EquipmentLine | None:
        return self._lines.get(line_id)

    def set_rate_table(self, rate_table: RateTable | None) -> None:
        self.rate_table = resolve_rate_table(rate_table)

    def update_draft(self, **changes: Any) -> EquipmentLine:
        unknown = set(changes) - set(_DRAFT_FIELDS)
        if unknown:
            raise TypeError(f"unknown draft fields: {', '.join(sorted(unknown))}")
        for key in ("purchase_price", "margin"):
            if key in changes:
                changes[key] = to_decimal(changes[key])
        if "quantity" in changes:
            changes["quantity"] = max(1, int(changes["quantity"]))
        self.draft = replace(self.draft, **changes)
        return self.draft

    def set_target_monthly_payment(self, value: Decimal | float | int | str) -> None:
        self.target_monthly_payment = to_decimal(value)

    def toggle_adapt_monthly_payment(self) -> bool:
        self.adapt_monthly_payment = not self.adapt_monthly_payment
        return self.adapt_monthly_payment

    # -- derived values ------------------------------------------------------

    def _forward(self) -> MonthlyPayment:
        key = (self.draft.purchase_price, self.draft.margin, self.rate_table)
        if self._last_forward is not None and self._last_forward[0] == key:
            return self._last_forward[1]
        result = calculate_monthly_payment(self.draft, self.rate_table)
        self._last_forward = (key, result)
        return result

    @property
    def monthly_payment(self) -> Decimal:
        return self._forward().monthly_payment

    @property
    def calculated_margin(self) -> CalculatedMargin:
        return calculate_margin_from_monthly_payment(
            self.target_monthly_payment, self.draft.purchase_price, self.rate_table
        )

    @property
    def coefficient(self) -> Decimal:
        solved = self.calculated_margin
        if solved.coefficient > 0:
            return solved.coefficient
        return self._forward().coefficient

    @property
    def adjustment(self) -> GlobalMarginAdjustment:
        return calculate_global_margin_adjustment(self.lines, self.rate_table, self.adapt_monthly_payment)

    @property
    def total_monthly_payment(self) -> Decimal:
        return self.adjustment.new_monthly

    # -- draft/list transitions ----------------------------------------------

    def _reset_draft(self) -> None:
        self.draft = new_line()
        self.editing_id = None
        self.target_monthly_payment = ZERO

    def apply_calculated_margin(self) -> bool:
        solved = self.calculated_margin
        if solved.percentage <= 0:
            return False
        changes: dict[str, Any] = {"margin": solved.percentage}
        if self.target_monthly_payment > 0:
            changes["monthly_payment"] = self.target_monthly_payment
        self.draft = replace(self.draft, **changes)
        logger.debug("applied solved margin %s%% to draft %s", solved.percentage, self.draft.id)
        return True

    def add_to_list(self) -> EquipmentLine | None:
        draft = self.draft
        if not draft.title or draft.purchase_price <= 0:
            logger.debug("ignoring add: draft needs a title and a positive purchase price")
            return None

        if self.target_monthly_payment > 0:
            payment = self.target_monthly_payment
            margin = self.calculated_margin.percentage
        else:
            payment = self.monthly_payment
            margin = draft.margin
        line = replace(draft, margin=round_decimal(margin), monthly_payment=payment)

        if self.editing_id is not None and self.editing_id in self._lines:
            line = replace(line, id=self.editing_id)
            # Assigning an existing key keeps its position.
            self._lines[self.editing_id] = line
            logger.debug("updated line %s", line.id)
        else:
            self._lines[line.id] = line
            logger.debug("added line %s (%s)", line.id, line.title)

        self._reset_draft()
        return line

    def start_editing(self, line_id: str) -> bool:
        line = self._lines.get(line_id)
        if line is None:
            return False
        self.draft = line
        self.editing_id = line_id
        self.target_monthly_payment = line.monthly_payment if line.monthly_payment > 0 else ZERO
        return True

    def cancel_editing(self) -> None:
        self._reset_draft()

    def remove_from_list(self, line_id: str) -> bool:
        removed = self._lines.pop(line_id, None)
        if removed is not None:
            logger.debug("removed line %s", line_id)
        return removed is not None

    def update_quantity(self, line_id: str, quantity: int) -> bool:
        line = self._lines.get(line_id)
        if line is None:
            return False
        if quantity < 1:
            logger.warning("ignoring quantity %s for line %s: must be >= 1", quantity, line_id)
            return False
        self._lines[line_id] = replace(line, quantity=int(quantity))
        return True
