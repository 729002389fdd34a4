from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_MARGIN = Decimal("20")


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class EquipmentLine:
    title: str = ""
    purchase_price: Decimal = Decimal("0")  # per unit
    quantity: int = 1
    margin: Decimal = DEFAULT_MARGIN  # percent on top of purchase price
    monthly_payment: Decimal = Decimal("0")  # per unit
    id: str = field(default_factory=new_id)


def new_line() -> EquipmentLine:
    """Fresh draft: empty title, zero price, quantity 1, 20% margin, new id."""
    return EquipmentLine()


@dataclass(frozen=True)
class CalculatedMargin:
    percentage: Decimal
    amount: Decimal
    coefficient: Decimal = Decimal("0")


ZERO_MARGIN = CalculatedMargin(percentage=Decimal("0"), amount=Decimal("0"))
