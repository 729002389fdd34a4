from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from lease_pricing.money import HUNDRED, ZERO, percent_of


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


@dataclass(frozen=True)
class Discount:
    # Commercial discount on the total monthly payment.
    enabled: bool = False
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = ZERO  # percent of the payment, or a fixed amount per month


@dataclass(frozen=True)
class DiscountResult:
    discount_amount: Decimal
    monthly_payment_before: Decimal
    monthly_payment_after: Decimal


def apply_discount(monthly_payment: Decimal, discount: Discount) -> DiscountResult:
    if not discount.enabled or monthly_payment <= 0:
        return DiscountResult(ZERO, monthly_payment, monthly_payment)

    if discount.type == DiscountType.PERCENTAGE:
        amount = monthly_payment * discount.value / HUNDRED
    else:
        amount = discount.value
    amount = max(ZERO, min(amount, monthly_payment))
    return DiscountResult(
        discount_amount=amount,
        monthly_payment_before=monthly_payment,
        monthly_payment_after=monthly_payment - amount,
    )


@dataclass(frozen=True)
class MarginImpact:
    before_amount: Decimal
    before_percent: Decimal
    after_amount: Decimal
    after_percent: Decimal
    exceeds_margin: bool  # advisory: the discount eats the whole margin


def margin_impact(
    monthly_payment: Decimal,
    discounted: DiscountResult,
    *,
    coefficient: Decimal = ZERO,
    total_purchase_price: Decimal = ZERO,
    margin: Decimal = ZERO,
) -> MarginImpact:
    """
    Margin before and after a discount.

    With a coefficient and a purchase total the margin is recovered from the
    payment (payment * 100 / coefficient - purchase). Without them the given
    `margin` is used and the discount is subtracted from it directly.
    """
    if coefficient > 0 and total_purchase_price > 0:
        before = monthly_payment * HUNDRED / coefficient - total_purchase_price
        after = discounted.monthly_payment_after * HUNDRED / coefficient - total_purchase_price
        before_pct = percent_of(before, total_purchase_price)
        after_pct = percent_of(after, total_purchase_price)
    else:
        before = margin
        after = margin - discounted.discount_amount
        before_pct = ZERO
        after_pct = ZERO

    return MarginImpact(
        before_amount=before,
        before_percent=before_pct,
        after_amount=after,
        after_percent=after_pct,
        exceeds_margin=after < 0,
    )
