from __future__ import annotations

from decimal import Decimal

import pytest

import lease_pricing.equipment.calculator as calculator_mod
from lease_pricing.equipment.calculator import EquipmentCalculator, Mode
from lease_pricing.rates.table import DEFAULT_RATE_TABLE, RateBracket, RateTable, load_rate_table

TABLE = RateTable(
    id="t",
    name="test",
    ranges=(
        RateBracket(Decimal("0"), Decimal("999"), Decimal("3.8")),
        RateBracket(Decimal("1000"), Decimal("1999"), Decimal("3.5")),
        RateBracket(Decimal("2000"), Decimal("4999"), Decimal("3.3")),
    ),
)


def _add(calc: EquipmentCalculator, title: str, price: str, margin: str = "20", quantity: int = 1):
    calc.update_draft(title=title, purchase_price=price, margin=margin, quantity=quantity)
    return calc.add_to_list()


def test_fresh_calculator_has_default_draft():
    calc = EquipmentCalculator()
    assert calc.rate_table is DEFAULT_RATE_TABLE
    assert calc.mode == Mode.IDLE
    assert calc.draft.title == ""
    assert calc.draft.quantity == 1
    assert calc.draft.margin == Decimal("20")
    assert calc.lines == []
    assert calc.total_monthly_payment == 0


def test_draft_monthly_payment_follows_inputs():
    calc = EquipmentCalculator(TABLE)
    calc.update_draft(title="Laptop", purchase_price="1000", margin="20")
    assert calc.monthly_payment == Decimal("42")
    assert calc.coefficient == Decimal("3.5")

    calc.update_draft(margin="100")  # 2000 financed -> 3.3 bracket
    assert calc.monthly_payment == Decimal("66")
    assert calc.coefficient == Decimal("3.3")


def test_forward_payment_is_memoised_per_inputs(monkeypatch):
    calls = []
    real = calculator_mod.calculate_monthly_payment

    def counting(line, table):
        calls.append((line.purchase_price, line.margin))
        return real(line, table)

    monkeypatch.setattr(calculator_mod, "calculate_monthly_payment", counting)
    calc = EquipmentCalculator(TABLE)
    calc.update_draft(purchase_price="1000")
    assert calc.monthly_payment == Decimal("42")
    assert calc.monthly_payment == Decimal("42")
    calc.update_draft(title="renamed")
    assert calc.monthly_payment == Decimal("42")
    assert len(calls) == 1

    calc.update_draft(margin="30")
    assert calc.monthly_payment == Decimal("1300") * Decimal("3.5") / 100
    assert len(calls) == 2


def test_forward_payment_follows_same_id_table_with_new_coefficient(tmp_path):
    rates = tmp_path / "leaser.csv"
    rates.write_text("min,max,coefficient\n0,999,3.8\n1000,1999,3.5\n")
    calc = EquipmentCalculator(load_rate_table(str(rates)))
    calc.update_draft(purchase_price="1000", margin="20")
    assert calc.monthly_payment == Decimal("42")

    rates.write_text("min,max,coefficient\n0,999,3.8\n1000,1999,4.0\n")
    reloaded = load_rate_table(str(rates))
    assert reloaded.id == calc.rate_table.id
    calc.set_rate_table(reloaded)
    assert calc.monthly_payment == Decimal("48")
    assert calc.coefficient == Decimal("4.0")


def test_add_edit_cancel_lifecycle():
    calc = EquipmentCalculator(TABLE)
    line = _add(calc, "Laptop", "1000")
    assert line is not None
    assert line.margin == Decimal("20")
    assert line.monthly_payment == Decimal("42")
    assert calc.draft.title == ""
    assert calc.draft.id != line.id

    before = calc.lines
    assert calc.start_editing(line.id)
    assert calc.mode == Mode.EDITING
    assert calc.editing_id == line.id
    assert calc.draft == line
    assert calc.target_monthly_payment == Decimal("42")

    calc.update_draft(purchase_price="5000")
    calc.cancel_editing()
    assert calc.mode == Mode.IDLE
    assert calc.lines == before
    assert calc.target_monthly_payment == 0
    assert calc.draft.title == ""


def test_add_ignores_incomplete_draft():
    calc = EquipmentCalculator(TABLE)
    calc.update_draft(purchase_price="1000")
    assert calc.add_to_list() is None
    calc.update_draft(title="Laptop", purchase_price="0")
    assert calc.add_to_list() is None
    assert calc.lines == []


def test_add_with_target_payment_uses_solved_margin():
    calc = EquipmentCalculator(TABLE)
    calc.update_draft(title="Laptop", purchase_price="1000", margin="35")
    calc.set_target_monthly_payment("42")
    assert calc.calculated_margin.percentage == Decimal("20.00")

    line = calc.add_to_list()
    assert line.margin == Decimal("20.00")
    assert line.monthly_payment == Decimal("42")
    assert calc.target_monthly_payment == 0
    assert calc.calculated_margin.percentage == 0


def test_saving_an_edit_replaces_line_in_place():
    calc = EquipmentCalculator(TABLE)
    a = _add(calc, "Monitor", "500")
    b = _add(calc, "Laptop", "1000")
    c = _add(calc, "Server", "2000")

    calc.start_editing(b.id)
    calc.update_draft(quantity=4)
    saved = calc.add_to_list()

    assert saved.id == b.id
    assert [ln.id for ln in calc.lines] == [a.id, b.id, c.id]
    assert calc.get_line(b.id).quantity == 4
    assert calc.get_line(b.id).margin == Decimal("20.00")
    assert calc.get_line(b.id).monthly_payment == Decimal("42")
    assert calc.mode == Mode.IDLE


def test_remove_and_update_quantity():
    calc = EquipmentCalculator(TABLE)
    a = _add(calc, "Monitor", "500")
    b = _add(calc, "Laptop", "1000")

    assert calc.update_quantity(a.id, 3)
    assert calc.get_line(a.id).quantity == 3
    assert not calc.update_quantity(a.id, 0)
    assert calc.get_line(a.id).quantity == 3
    assert not calc.update_quantity("missing", 2)

    assert calc.remove_from_list(b.id)
    assert not calc.remove_from_list(b.id)
    assert [ln.id for ln in calc.lines] == [a.id]


def test_total_monthly_payment_tracks_list_and_adapt_flag():
    calc = EquipmentCalculator(TABLE)
    a = _add(calc, "Monitor", "500")  # 600 financed -> 3.8 -> 22.8
    _add(calc, "Laptop", "1000")  # 42
    assert calc.total_monthly_payment == Decimal("64.8")

    calc.update_quantity(a.id, 2)
    assert calc.total_monthly_payment == Decimal("87.6")

    assert calc.toggle_adapt_monthly_payment() is True
    # 1200 + 1200 = 2400 financed -> 3.3 bracket.
    assert calc.total_monthly_payment == Decimal("79.2")
    assert calc.adjustment.adapt_monthly_payment is True


def test_apply_calculated_margin():
    calc = EquipmentCalculator(TABLE)
    calc.update_draft(title="Laptop", purchase_price="1000", margin="5")
    assert calc.apply_calculated_margin() is False

    calc.set_target_monthly_payment("42")
    assert calc.apply_calculated_margin() is True
    assert calc.draft.margin == Decimal("20.00")
    assert calc.draft.monthly_payment == Decimal("42")


def test_set_rate_table_none_falls_back_to_default():
    calc = EquipmentCalculator(TABLE)
    calc.set_rate_table(None)
    assert calc.rate_table is DEFAULT_RATE_TABLE


def test_update_draft_rejects_unknown_fields():
    calc = EquipmentCalculator(TABLE)
    with pytest.raises(TypeError):
        calc.update_draft(colour="red")
