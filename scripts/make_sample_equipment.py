from __future__ import annotations

import argparse
import os

import numpy as np
import pandas as pd


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True)
    ap.add_argument("--rows", type=int, default=20)
    ap.add_argument("--seed", type=int, default=0)
    ap.add_argument(
        "--with-payments",
        action="store_true",
        default=False,
        help="Also write a monthly_payment column (otherwise the CLI computes it).",
    )
    args = ap.parse_args()

    rng = np.random.default_rng(args.seed)

    kinds = ["Laptop", "Desktop", "Monitor", "Tablet", "Smartphone", "Printer", "Server"]
    grades = ["A", "B", "C"]

    kind = rng.choice(kinds, size=args.rows)
    grade = rng.choice(grades, size=args.rows)

    base_price = np.select(
        [kind == "Laptop", kind == "Desktop", kind == "Monitor", kind == "Tablet", kind == "Smartphone", kind == "Printer"],
        [950, 780, 210, 480, 620, 340],
        default=2900,
    ).astype(float)

    # Reconditioned grades sell below new price.
    grade_factor = np.select([grade == "A", grade == "B", grade == "C"], [0.85, 0.72, 0.6], default=1.0)

    purchase_price = (base_price * grade_factor * rng.normal(1.0, 0.08, size=args.rows)).clip(50, None).round(2)
    quantity = rng.integers(1, 11, size=args.rows)
    margin = rng.choice([15.0, 18.0, 20.0, 22.5, 25.0, 30.0], size=args.rows)

    df = pd.DataFrame(
        {
            "title": [f"{k} grade {g}" for k, g in zip(kind, grade)],
            "purchase_price": purchase_price,
            "quantity": quantity.astype(int),
            "margin": margin,
        }
    )
    if args.with_payments:
        # Flat 3.2% coefficient; close to the default table's mid brackets.
        df["monthly_payment"] = (df["purchase_price"] * (1 + df["margin"] / 100.0) * 0.032).round(2)

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    df.to_csv(args.out, index=False)
    print(f"wrote {args.out} rows={len(df)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
