from __future__ import annotations

from decimal import Decimal

from lease_pricing.pricing.discount import Discount, DiscountType, apply_discount, margin_impact


def test_percentage_discount():
    res = apply_discount(Decimal("100"), Discount(enabled=True, type=DiscountType.PERCENTAGE, value=Decimal("10")))
    assert res.discount_amount == Decimal("10")
    assert res.monthly_payment_before == Decimal("100")
    assert res.monthly_payment_after == Decimal("90")


def test_discount_is_clamped_to_payment():
    over_pct = apply_discount(Decimal("100"), Discount(enabled=True, type=DiscountType.PERCENTAGE, value=Decimal("150")))
    assert over_pct.discount_amount == Decimal("100")
    assert over_pct.monthly_payment_after == 0

    over_amt = apply_discount(Decimal("100"), Discount(enabled=True, type=DiscountType.AMOUNT, value=Decimal("250")))
    assert over_amt.discount_amount == Decimal("100")
    assert over_amt.monthly_payment_after == 0

    negative = apply_discount(Decimal("100"), Discount(enabled=True, type=DiscountType.AMOUNT, value=Decimal("-5")))
    assert negative.discount_amount == 0
    assert negative.monthly_payment_after == Decimal("100")


def test_disabled_discount_changes_nothing():
    res = apply_discount(Decimal("100"), Discount(enabled=False, type=DiscountType.AMOUNT, value=Decimal("30")))
    assert res.discount_amount == 0
    assert res.monthly_payment_after == Decimal("100")


def test_margin_impact_from_coefficient():
    disc = apply_discount(Decimal("42"), Discount(enabled=True, value=Decimal("10")))
    impact = margin_impact(Decimal("42"), disc, coefficient=Decimal("3.5"), total_purchase_price=Decimal("1000"))
    assert impact.before_amount == Decimal("200")
    assert impact.before_percent == Decimal("20")
    assert impact.after_amount == Decimal("80")
    assert impact.after_percent == Decimal("8")
    assert not impact.exceeds_margin


def test_margin_impact_flags_discount_larger_than_margin():
    disc = apply_discount(Decimal("42"), Discount(enabled=True, value=Decimal("20")))
    impact = margin_impact(Decimal("42"), disc, coefficient=Decimal("3.5"), total_purchase_price=Decimal("1000"))
    assert impact.after_amount == Decimal("-40")
    assert impact.exceeds_margin


def test_margin_impact_without_coefficient_uses_plain_margin():
    disc = apply_discount(Decimal("100"), Discount(enabled=True, type=DiscountType.AMOUNT, value=Decimal("10")))
    impact = margin_impact(Decimal("100"), disc, margin=Decimal("50"))
    assert impact.before_amount == Decimal("50")
    assert impact.after_amount == Decimal("40")
    assert impact.before_percent == impact.after_percent == 0
    assert not impact.exceeds_margin
