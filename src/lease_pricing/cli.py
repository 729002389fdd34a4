from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from lease_pricing.equipment.frames import lines_to_frame, load_equipment_csv
from lease_pricing.equipment.models import EquipmentLine
from lease_pricing.financing.payment import (
    calculate_margin_from_monthly_payment,
    calculate_monthly_payment,
    check_margin_solve,
)
from lease_pricing.fleet.adjustment import calculate_global_margin_adjustment, reprice_with_global_margin
from lease_pricing.money import to_decimal
from lease_pricing.pricing.discount import Discount, DiscountType, apply_discount, margin_impact
from lease_pricing.rates.table import RateTable, load_rate_table, resolve_rate_table


def _mkdirp(path: str) -> None:
    d = os.path.dirname(path)
    if d:
        os.makedirs(d, exist_ok=True)


def json_default(o: Any) -> Any:
    if isinstance(o, Decimal):
        return float(o)
    if isinstance(o, Enum):
        return o.value
    if is_dataclass(o):
        return asdict(o)
    raise TypeError(f"not JSON serializable: {type(o).__name__}")


def _print_json(out: dict[str, Any]) -> None:
    print(json.dumps(out, indent=2, sort_keys=True, default=json_default))


def _decimal_arg(value: str) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _rate_table(args: argparse.Namespace) -> RateTable:
    if not args.rate_table:
        return resolve_rate_table(None)
    try:
        return load_rate_table(args.rate_table)
    except (OSError, ValueError) as e:
        raise SystemExit(f"--rate-table {args.rate_table}: {e}") from e


def cmd_quote(args: argparse.Namespace) -> int:
    table = _rate_table(args)
    if args.purchase_price < 0:
        raise SystemExit("--purchase-price must be >= 0")
    if args.quantity < 1:
        raise SystemExit("--quantity must be >= 1")
    line = EquipmentLine(
        title=args.title,
        purchase_price=args.purchase_price,
        quantity=args.quantity,
        margin=args.margin,
    )
    res = calculate_monthly_payment(line, table)
    _print_json(
        {
            "rate_table": table.id,
            "inputs": {
                "title": line.title,
                "purchase_price": line.purchase_price,
                "quantity": line.quantity,
                "margin": line.margin,
            },
            "financed_amount": res.financed_amount,
            "coefficient": res.coefficient,
            "monthly_payment": res.monthly_payment,
            "monthly_total": res.monthly_payment * line.quantity,
        }
    )
    return 0


def cmd_solve_margin(args: argparse.Namespace) -> int:
    table = _rate_table(args)
    solved = calculate_margin_from_monthly_payment(args.target_monthly, args.purchase_price, table)
    check = check_margin_solve(args.target_monthly, args.purchase_price, table)
    _print_json(
        {
            "rate_table": table.id,
            "inputs": {
                "target_monthly_payment": args.target_monthly,
                "purchase_price": args.purchase_price,
            },
            "margin_percentage": solved.percentage,
            "margin_amount": solved.amount,
            "coefficient": solved.coefficient,
            "bracket_check": check,
        }
    )
    return 0


def cmd_fleet(args: argparse.Namespace) -> int:
    table = _rate_table(args)
    try:
        lines = load_equipment_csv(args.equipment_csv, table)
    except (OSError, ValueError) as e:
        raise SystemExit(f"--equipment-csv {args.equipment_csv}: {e}") from e

    repriced = None
    if args.global_margin is not None:
        try:
            repriced = reprice_with_global_margin(lines, table, args.global_margin)
        except ValueError as e:
            raise SystemExit(f"--global-margin: {e}") from e
        lines = list(repriced.lines)

    adj = calculate_global_margin_adjustment(lines, table, args.adapt_monthly_payment)
    out: dict[str, Any] = {
        "rate_table": table.id,
        "n_lines": len(lines),
        "adjustment": adj,
        "total_monthly_payment": adj.new_monthly,
    }
    if repriced is not None:
        out["global_margin"] = {
            "margin_percent": repriced.margin_percent,
            "total_purchase_price": repriced.total_purchase_price,
            "total_selling_price": repriced.total_selling_price,
            "coefficient": repriced.coefficient,
            "total_monthly_payment": repriced.total_monthly_payment,
            "margin_amount": repriced.margin_amount,
        }

    if args.discount_value is not None:
        discount = Discount(enabled=True, type=DiscountType(args.discount_type), value=args.discount_value)
        disc = apply_discount(adj.new_monthly, discount)
        total_purchase = sum((ln.purchase_price * ln.quantity for ln in lines), Decimal("0"))
        impact = margin_impact(
            adj.new_monthly,
            disc,
            coefficient=adj.current_coef,
            total_purchase_price=total_purchase,
            margin=adj.amount,
        )
        out["discount"] = {"result": disc, "margin_impact": impact}

    if args.out_csv:
        _mkdirp(args.out_csv)
        lines_to_frame(lines).to_csv(args.out_csv, index=False)
        out["out_csv"] = args.out_csv

    _print_json(out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lease-pricing")
    p.add_argument("--log-level", default="WARNING", help="Python logging level (DEBUG, INFO, ...).")
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_rate_table(sp: argparse.ArgumentParser) -> None:
        sp.add_argument(
            "--rate-table",
            default=None,
            help="CSV with min,max,coefficient columns. Built-in default table if omitted.",
        )

    q = sub.add_parser("quote", help="Monthly payment for one equipment line.")
    q.add_argument("--purchase-price", type=_decimal_arg, required=True, help="Per-unit purchase price.")
    q.add_argument("--margin", type=_decimal_arg, default=Decimal("20"), help="Margin in percent.")
    q.add_argument("--quantity", type=int, default=1)
    q.add_argument("--title", default="")
    add_rate_table(q)
    q.set_defaults(func=cmd_quote)

    s = sub.add_parser("solve-margin", help="Margin required to reach a target monthly payment.")
    s.add_argument("--target-monthly", type=_decimal_arg, required=True)
    s.add_argument("--purchase-price", type=_decimal_arg, required=True)
    add_rate_table(s)
    s.set_defaults(func=cmd_solve_margin)

    f = sub.add_parser("fleet", help="Aggregate an equipment CSV into a fleet monthly total.")
    f.add_argument("--equipment-csv", required=True)
    f.add_argument(
        "--adapt-monthly-payment",
        action="store_true",
        default=False,
        help="Re-price the total through the aggregate amount's bracket.",
    )
    f.add_argument("--global-margin", type=_decimal_arg, default=None, help="Apply one margin (percent) to all lines.")
    f.add_argument("--discount-type", choices=[t.value for t in DiscountType], default=DiscountType.PERCENTAGE.value)
    f.add_argument("--discount-value", type=_decimal_arg, default=None)
    f.add_argument("--out-csv", default=None, help="Write the per-line frame here.")
    add_rate_table(f)
    f.set_defaults(func=cmd_fleet)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
