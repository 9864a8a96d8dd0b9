"""Unit tests for order pricing.

Pure functions only; no database.
"""

from decimal import Decimal

import pytest
from libs.common.currency import from_cents, money_sum, to_cents, to_money
from services.forwarding_service.models import ChargeType, ServiceType
from services.forwarding_service.services.pricing import (
    ChargeRule,
    ChargeSchedule,
    LineItem,
    ServiceCharge,
    compute_totals,
)

ITEMS = [
    LineItem(Decimal("10.00"), 2, Decimal("1.500")),
    LineItem(Decimal("5.00"), 1, Decimal("0.250")),
]
SERVICES = [
    ServiceCharge(Decimal("3.00"), required=True),
    ServiceCharge(Decimal("2.00"), required=False, selected=False),
]
FIXED_FIVE = [ChargeRule(ChargeType.FIXED, Decimal("5.00"))]


@pytest.mark.unit
def test_buy_for_me_grand_total():
    """Products 25 + required service 3 + fixed surcharge 5 = 33."""
    totals = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, FIXED_FIVE)

    assert totals.product_total == Decimal("25.00")
    assert totals.service_total == Decimal("3.00")
    assert totals.surcharge_total == Decimal("5.00")
    assert totals.grand_total == Decimal("33.00")


@pytest.mark.unit
def test_total_weight_sums_quantities():
    totals = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, FIXED_FIVE)
    assert totals.total_weight == Decimal("3.250")


@pytest.mark.unit
def test_selecting_optional_service_adds_its_price():
    services = [
        ServiceCharge(Decimal("3.00"), required=True),
        ServiceCharge(Decimal("2.00"), selected=True),
    ]
    totals = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, services, FIXED_FIVE)

    assert totals.service_total == Decimal("5.00")
    assert totals.grand_total == Decimal("35.00")


@pytest.mark.unit
def test_unselected_optional_price_never_changes_totals():
    def totals_with_optional_at(price):
        services = [
            ServiceCharge(Decimal("3.00"), required=True),
            ServiceCharge(Decimal(price), required=False, selected=False),
        ]
        return compute_totals(ServiceType.BUY_FOR_ME, ITEMS, services, FIXED_FIVE)

    assert totals_with_optional_at("2.00") == totals_with_optional_at("999.00")


@pytest.mark.unit
def test_required_service_is_charged_even_when_not_selected():
    charge = ServiceCharge(Decimal("3.00"), required=True, selected=False)
    assert charge.charged is True


@pytest.mark.unit
def test_ship_for_me_excludes_product_cost():
    """The shopper already owns the goods; only services and surcharges count."""
    totals = compute_totals(ServiceType.SHIP_FOR_ME, ITEMS, SERVICES, FIXED_FIVE)

    assert totals.product_total == Decimal("25.00")
    assert totals.grand_total == Decimal("8.00")


@pytest.mark.unit
def test_percent_surcharge_applies_to_base():
    surcharges = [ChargeRule(ChargeType.PERCENT, Decimal("10"))]
    totals = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, surcharges)

    # 10% of (25 + 3)
    assert totals.surcharge_total == Decimal("2.80")
    assert totals.grand_total == Decimal("30.80")


@pytest.mark.unit
def test_mixed_surcharges_are_summed():
    surcharges = [
        ChargeRule(ChargeType.PERCENT, Decimal("10")),
        ChargeRule(ChargeType.FIXED, Decimal("5.00")),
    ]
    totals = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, surcharges)
    assert totals.surcharge_total == Decimal("7.80")


@pytest.mark.unit
def test_pricing_is_deterministic():
    first = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, FIXED_FIVE)
    second = compute_totals(ServiceType.BUY_FOR_ME, ITEMS, SERVICES, FIXED_FIVE)
    assert first == second


@pytest.mark.unit
def test_empty_order_costs_nothing():
    totals = compute_totals(ServiceType.SHIP_FOR_ME, [], [], [])
    assert totals.grand_total == Decimal("0.00")
    assert totals.total_weight == Decimal("0")


@pytest.mark.unit
def test_percent_charge_rounds_half_up():
    """5% of 0.50 is 0.025, which rounds up to 0.03 (not banker's 0.02)."""
    rule = ChargeRule(ChargeType.PERCENT, Decimal("5"))
    assert rule.apply(Decimal("0.50")) == Decimal("0.03")


@pytest.mark.unit
def test_empty_schedule_charges_nothing():
    assert ChargeSchedule().apply(Decimal("100.00")) == Decimal("0.00")


# ---------------------------------------------------------------------------
# Money helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_to_money_rejects_float():
    with pytest.raises(TypeError):
        to_money(0.1)


@pytest.mark.unit
def test_money_sum_rounds_to_cents():
    assert money_sum(["0.105", "0.10"]) == Decimal("0.21")


@pytest.mark.unit
def test_cents_conversion():
    assert to_cents(Decimal("45.67")) == 4567
    assert from_cents(4567) == Decimal("45.67")
