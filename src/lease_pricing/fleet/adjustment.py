from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable

from lease_pricing.equipment.models import EquipmentLine
from lease_pricing.financing.payment import calculate_financed_amount
from lease_pricing.money import HUNDRED, ZERO, percent_of, round_decimal
from lease_pricing.rates.table import RateTable, find_coefficient


@dataclass(frozen=True)
class GlobalMarginAdjustment:
    percentage: Decimal = ZERO
    amount: Decimal = ZERO
    new_monthly: Decimal = ZERO
    current_coef: Decimal = ZERO
    new_coef: Decimal = ZERO
    adapt_monthly_payment: bool = False
    margin_difference: Decimal = ZERO


def calculate_global_margin_adjustment(
    lines: Iterable[EquipmentLine],
    rate_table: RateTable | None,
    adapt_monthly_payment: bool = False,
) -> GlobalMarginAdjustment:
    """
    Fleet-level monthly total and the margin that justifies it.

    adapt_monthly_payment=False: the total is the sum of each line's stored
    monthly payment and the margin is the sum of each line's own margin.

    adapt_monthly_payment=True: the total is re-priced from the aggregate
    financed amount through that aggregate's bracket; margin_difference is the
    back-solved margin minus the per-line margin.
    """
    lines = list(lines)
    if not lines:
        return GlobalMarginAdjustment(adapt_monthly_payment=adapt_monthly_payment)

    total_base = sum((ln.purchase_price * ln.quantity for ln in lines), ZERO)
    normal_margin = sum((ln.purchase_price * ln.quantity * ln.margin / HUNDRED for ln in lines), ZERO)
    total_financed = sum(
        (calculate_financed_amount(ln.purchase_price, ln.margin) * ln.quantity for ln in lines),
        ZERO,
    )

    coef = find_coefficient(total_financed, rate_table)
    current_monthly = sum((ln.monthly_payment * ln.quantity for ln in lines), ZERO)
    theoretical_monthly = total_financed * coef / HUNDRED

    if adapt_monthly_payment and coef > 0:
        new_monthly = theoretical_monthly
        required_financed = theoretical_monthly * HUNDRED / coef
        adjusted_margin = required_financed - total_base
        margin_difference = adjusted_margin - normal_margin
    elif adapt_monthly_payment:
        # Zero coefficient: nothing to back-solve through.
        new_monthly = theoretical_monthly
        adjusted_margin = normal_margin
        margin_difference = ZERO
    else:
        new_monthly = current_monthly
        adjusted_margin = normal_margin
        margin_difference = ZERO

    return GlobalMarginAdjustment(
        percentage=round_decimal(percent_of(adjusted_margin, total_base)),
        amount=adjusted_margin,
        new_monthly=new_monthly,
        current_coef=coef,
        new_coef=coef,
        adapt_monthly_payment=adapt_monthly_payment,
        margin_difference=margin_difference,
    )


@dataclass(frozen=True)
class FleetReprice:
    margin_percent: Decimal
    total_purchase_price: Decimal
    total_selling_price: Decimal
    coefficient: Decimal
    total_monthly_payment: Decimal
    margin_amount: Decimal
    lines: tuple[EquipmentLine, ...]


def reprice_with_global_margin(
    lines: Iterable[EquipmentLine],
    rate_table: RateTable | None,
    margin_percent: Decimal,
) -> FleetReprice:
    """
    Apply one margin to the whole fleet.

    The aggregate selling price goes through a single bracket lookup; each line
    then receives the share of the new monthly total proportional to its share
    of total purchase cost.
    """
    if margin_percent < 0:
        raise ValueError("margin_percent must be >= 0")

    lines = list(lines)
    total_purchase = sum((ln.purchase_price * ln.quantity for ln in lines), ZERO)
    total_selling = calculate_financed_amount(total_purchase, margin_percent)
    coef = find_coefficient(total_selling, rate_table)
    total_monthly = total_selling * coef / HUNDRED

    repriced: list[EquipmentLine] = []
    if total_purchase > 0:
        for ln in lines:
            ratio = ln.purchase_price * ln.quantity / total_purchase
            repriced.append(
                replace(
                    ln,
                    margin=round_decimal(margin_percent),
                    monthly_payment=total_monthly * ratio / ln.quantity,
                )
            )
    else:
        repriced = lines

    return FleetReprice(
        margin_percent=margin_percent,
        total_purchase_price=total_purchase,
        total_selling_price=total_selling,
        coefficient=coef,
        total_monthly_payment=total_monthly,
        margin_amount=total_selling - total_purchase,
        lines=tuple(repriced),
    )
