from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")


def round_currency(value: float) -> float:
    """Round to cents, half-up (``round()`` would bank 0.125 down to 0.12)."""
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def sum_currency(values: Iterable[float]) -> float:
    return round_currency(sum(Decimal(str(v)) for v in values))
