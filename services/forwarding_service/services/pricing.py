"""Pure order pricing.

Nothing here touches the database; callers pass in plain values so the same
rules price a quote, a stored order and a ledger commission.

Scenario: two items at $10 and one at $5 with a required $3 service, an
unselected optional $2 service, buy-for-me, and a fixed $5 surcharge::

    product  = 10*2 + 5*1 = 25
    service  = 3            (optional $2 not selected)
    base     = 25 + 3 = 28
    surcharge= 5
    grand    = 33
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Sequence

from libs.common.currency import ZERO, money_sum, to_money
from services.forwarding_service.models.enums import ChargeType, ServiceType


@dataclass(frozen=True)
class ChargeRule:
    """A percent-of-base or fixed charge."""

    charge_type: ChargeType
    rate: Decimal

    def apply(self, base: Decimal) -> Decimal:
        if self.charge_type == ChargeType.PERCENT:
            return to_money(Decimal(base) * Decimal(self.rate) / Decimal(100))
        return to_money(self.rate)


@dataclass(frozen=True)
class ChargeSchedule:
    """Several rules charged against the same base, summed."""

    rules: tuple[ChargeRule, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, rules: Iterable[ChargeRule]) -> "ChargeSchedule":
        return cls(tuple(rules))

    def apply(self, base: Decimal) -> Decimal:
        return money_sum(rule.apply(base) for rule in self.rules)


@dataclass(frozen=True)
class LineItem:
    unit_price: Decimal
    quantity: int
    unit_weight: Decimal = Decimal("0")


@dataclass(frozen=True)
class ServiceCharge:
    """An add-on service as offered on an order form."""

    price: Decimal
    required: bool = False
    selected: bool = False

    @property
    def charged(self) -> bool:
        return self.required or self.selected


@dataclass(frozen=True)
class OrderTotals:
    product_total: Decimal
    service_total: Decimal
    surcharge_total: Decimal
    grand_total: Decimal
    total_weight: Decimal


def compute_totals(
    service_type: ServiceType,
    line_items: Sequence[LineItem],
    services: Sequence[ServiceCharge],
    surcharges: Sequence[ChargeRule],
) -> OrderTotals:
    """
    Price an order.

    Product cost only counts for buy-for-me orders; for ship-for-me the
    shopper already owns the goods. Percent surcharges apply to the base
    (products where counted, plus charged services).
    """
    product_total = money_sum(item.unit_price * item.quantity for item in line_items)
    service_total = money_sum(s.price for s in services if s.charged)
    total_weight = sum(
        (Decimal(item.unit_weight) * item.quantity for item in line_items),
        Decimal("0"),
    )

    product_contribution = (
        product_total if service_type == ServiceType.BUY_FOR_ME else ZERO
    )
    base = product_contribution + service_total
    surcharge_total = ChargeSchedule.of(surcharges).apply(base)

    return OrderTotals(
        product_total=product_total,
        service_total=service_total,
        surcharge_total=surcharge_total,
        grand_total=to_money(base + surcharge_total),
        total_weight=total_weight,
    )
