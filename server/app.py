from __future__ import annotations

import argparse
import json
import logging
from decimal import Decimal
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import pandas as pd

from lease_pricing.cli import json_default
from lease_pricing.equipment.frames import REQUIRED_COLUMNS, lines_from_frame
from lease_pricing.equipment.models import EquipmentLine
from lease_pricing.financing.payment import calculate_margin_from_monthly_payment, calculate_monthly_payment
from lease_pricing.fleet.adjustment import calculate_global_margin_adjustment
from lease_pricing.money import to_decimal
from lease_pricing.rates.table import RateTable, rate_table_from_frame, resolve_rate_table

logger = logging.getLogger("lease_pricing.server")


def _rate_table_from_body(body: dict[str, Any]) -> RateTable:
    raw = body.get("rate_table")
    if raw is None:
        return resolve_rate_table(None)
    if not isinstance(raw, dict) or not isinstance(raw.get("ranges"), list):
        raise ValueError("rate_table must be an object with a ranges list")
    df = pd.DataFrame(raw["ranges"])
    return rate_table_from_frame(df, id=str(raw.get("id") or "posted"), name=raw.get("name"))


def _decimal_field(body: dict[str, Any], key: str, default: Decimal | None = None) -> Decimal:
    if key not in body:
        if default is None:
            raise ValueError(f"missing field: {key}")
        return default
    return to_decimal(body[key])


def monthly_payment_endpoint(body: dict[str, Any]) -> dict[str, Any]:
    table = _rate_table_from_body(body)
    line = EquipmentLine(
        purchase_price=_decimal_field(body, "purchase_price"),
        margin=_decimal_field(body, "margin", Decimal("20")),
    )
    res = calculate_monthly_payment(line, table)
    return {
        "financed_amount": res.financed_amount,
        "coefficient": res.coefficient,
        "monthly_payment": res.monthly_payment,
    }


def solve_margin_endpoint(body: dict[str, Any]) -> dict[str, Any]:
    table = _rate_table_from_body(body)
    solved = calculate_margin_from_monthly_payment(
        _decimal_field(body, "target_monthly_payment"),
        _decimal_field(body, "purchase_price"),
        table,
    )
    return {"percentage": solved.percentage, "amount": solved.amount, "coefficient": solved.coefficient}


def fleet_endpoint(body: dict[str, Any]) -> dict[str, Any]:
    table = _rate_table_from_body(body)
    equipment = body.get("equipment")
    if not isinstance(equipment, list):
        raise ValueError("Body must include an equipment list")
    df = pd.DataFrame(equipment) if equipment else pd.DataFrame(columns=list(REQUIRED_COLUMNS))
    adapt = body.get("adapt_monthly_payment", False)
    if not isinstance(adapt, bool):
        raise ValueError("adapt_monthly_payment must be true or false")
    lines = lines_from_frame(df, table)
    adj = calculate_global_margin_adjustment(lines, table, adapt)
    return {"adjustment": adj, "total_monthly_payment": adj.new_monthly}


ROUTES = {
    "/api/monthly-payment": monthly_payment_endpoint,
    "/api/solve-margin": solve_margin_endpoint,
    "/api/fleet": fleet_endpoint,
}


class App(BaseHTTPRequestHandler):
    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        data = json.dumps(payload, default=json_default).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _read_json_body(self) -> Any:
        n = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(n) if n > 0 else b""
        if not raw:
            return None
        return json.loads(raw.decode("utf-8"))

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(HTTPStatus.NO_CONTENT)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "POST, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.end_headers()

    def do_POST(self) -> None:  # noqa: N802
        handler = ROUTES.get(self.path.rstrip("/"))
        if handler is None:
            return self._send_json(HTTPStatus.NOT_FOUND, {"error": "Unknown endpoint"})
        try:
            body = self._read_json_body()
            if not isinstance(body, dict):
                return self._send_json(HTTPStatus.BAD_REQUEST, {"error": "Expected JSON object body"})
            return self._send_json(HTTPStatus.OK, handler(body))
        except (ValueError, json.JSONDecodeError) as e:
            return self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(e)})
        except Exception as e:  # pragma: no cover
            logger.exception("request to %s failed", self.path)
            return self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": f"{type(e).__name__}: {e}"})


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    httpd = ThreadingHTTPServer(("127.0.0.1", args.port), App)
    logger.info("serving lease pricing API at http://127.0.0.1:%d/", args.port)
    httpd.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
