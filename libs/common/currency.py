"""Money helpers for DParcel.

Internal storage unit: major currency units as ``Decimal`` with two places
(``Numeric(12, 2)`` columns).
Gateway unit: integer minor units (cents), which is what the payment
processor expects on the wire.

Conversion chain
----------------
Decimal → quantize(0.01, ROUND_HALF_UP) → stored amount
stored amount × 100 → cents
cents ÷ 100 → stored amount
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

# ─── constants ───────────────────────────────────────────────────────────────

CENTS_PER_UNIT: int = 100
CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


# ─── conversion helpers ──────────────────────────────────────────────────────


def to_money(value: Number) -> Decimal:
    """Coerce to Decimal rounded half-up to cents. Floats are rejected."""
    if isinstance(value, float):
        raise TypeError("Use Decimal or str for money, not float")
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Number]) -> Decimal:
    """Sum money values, rounding the result to cents."""
    return to_money(sum((Decimal(v) for v in values), Decimal("0")))


def to_cents(amount: Number) -> int:
    """Convert a money amount to integer cents. $1.23 = 123."""
    return int(to_money(amount) * CENTS_PER_UNIT)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a money amount. 123 = $1.23."""
    return to_money(Decimal(cents) / CENTS_PER_UNIT)
