from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal

from lease_pricing.equipment.models import ZERO_MARGIN, CalculatedMargin, EquipmentLine
from lease_pricing.money import HUNDRED, round_decimal
from lease_pricing.rates.table import RateTable, find_coefficient, resolve_rate_table

logger = logging.getLogger(__name__)


def calculate_financed_amount(purchase_price: Decimal, margin_percent: Decimal) -> Decimal:
    # Cost plus the reseller's markup: what the leaser actually finances.
    return purchase_price * (1 + margin_percent / HUNDRED)


@dataclass(frozen=True)
class MonthlyPayment:
    monthly_payment: Decimal
    coefficient: Decimal
    financed_amount: Decimal


def calculate_monthly_payment(line: EquipmentLine, rate_table: RateTable | None) -> MonthlyPayment:
    """
    Per-unit monthly payment for one equipment line.

    financed = purchase_price * (1 + margin/100)
    coefficient = bracket lookup on financed
    monthly = financed * coefficient / 100
    """
    financed = calculate_financed_amount(line.purchase_price, line.margin)
    coef = find_coefficient(financed, rate_table)
    return MonthlyPayment(
        monthly_payment=financed * coef / HUNDRED,
        coefficient=coef,
        financed_amount=financed,
    )


def with_monthly_payment(line: EquipmentLine, rate_table: RateTable | None) -> EquipmentLine:
    return replace(line, monthly_payment=calculate_monthly_payment(line, rate_table).monthly_payment)


def _reverse_coefficient(target_monthly_payment: Decimal, rate_table: RateTable | None) -> Decimal:
    # Heuristic, kept for compatibility with stored offers: walk the brackets in
    # table order and take the first one whose own range contains the amount its
    # coefficient would imply. This can pick a different bracket than
    # find_coefficient() picks for the resulting financed amount; see
    # check_margin_solve().
    ranges = resolve_rate_table(rate_table).ranges
    for bracket in ranges:
        if bracket.coefficient <= 0:
            continue
        estimate = target_monthly_payment * HUNDRED / bracket.coefficient
        if bracket.contains(estimate):
            return bracket.coefficient
    return ranges[0].coefficient


def calculate_margin_from_monthly_payment(
    target_monthly_payment: Decimal,
    purchase_price: Decimal,
    rate_table: RateTable | None,
) -> CalculatedMargin:
    """
    Margin needed on `purchase_price` to reach `target_monthly_payment`.

    Non-positive inputs (or an unusable coefficient) give the zero margin.
    The percentage is rounded to 2 decimals; the amount is not.
    """
    if target_monthly_payment <= 0 or purchase_price <= 0:
        return ZERO_MARGIN

    coef = _reverse_coefficient(target_monthly_payment, rate_table)
    if coef <= 0:
        return ZERO_MARGIN

    required_financed = target_monthly_payment * HUNDRED / coef
    margin_amount = required_financed - purchase_price
    margin_pct = margin_amount / purchase_price * HUNDRED
    logger.debug(
        "solved margin: target=%s price=%s coef=%s financed=%s margin=%s (%s%%)",
        target_monthly_payment,
        purchase_price,
        coef,
        required_financed,
        margin_amount,
        margin_pct,
    )
    return CalculatedMargin(percentage=round_decimal(margin_pct), amount=margin_amount, coefficient=coef)


@dataclass(frozen=True)
class MarginSolveCheck:
    reverse_coefficient: Decimal
    forward_coefficient: Decimal
    required_financed_amount: Decimal
    agrees: bool


def check_margin_solve(
    target_monthly_payment: Decimal,
    purchase_price: Decimal,
    rate_table: RateTable | None,
) -> MarginSolveCheck:
    """
    Compare the bracket chosen by the reverse solve with the bracket the forward
    calculation picks for the same financed amount.
    """
    solved = calculate_margin_from_monthly_payment(target_monthly_payment, purchase_price, rate_table)
    if solved.coefficient <= 0:
        zero = Decimal("0")
        return MarginSolveCheck(zero, zero, zero, agrees=True)

    financed = target_monthly_payment * HUNDRED / solved.coefficient
    forward = find_coefficient(financed, rate_table)
    agrees = forward == solved.coefficient
    if not agrees:
        logger.warning(
            "reverse solve used coefficient %s but %s maps to %s going forward",
            solved.coefficient,
            financed,
            forward,
        )
    return MarginSolveCheck(
        reverse_coefficient=solved.coefficient,
        forward_coefficient=forward,
        required_financed_amount=financed,
        agrees=agrees,
    )
