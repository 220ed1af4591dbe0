"""
Tests for the pricing engine.

Example-based checks plus hypothesis properties over the totals formula.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from rest_api.services.domain.pricing import (
    ModifierSnapshot,
    PricedLine,
    apply_tax,
    compute_order_totals,
    compute_session_totals,
    price_line,
    to_money,
)


def _modifier(adjustment: str) -> ModifierSnapshot:
    return ModifierSnapshot(
        modifier_group_id=1,
        modifier_option_id=1,
        price_adjustment=Decimal(adjustment),
        group_name="Size",
        option_name="Large",
    )


class _Order:
    def __init__(self, subtotal: str, status: str = "pending"):
        self.subtotal = Decimal(subtotal)
        self.status = status


money = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)


class TestToMoney:
    def test_rounds_half_up(self):
        assert to_money("1.005") == Decimal("1.01")
        assert to_money("1.004") == Decimal("1.00")

    def test_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")

    def test_accepts_float_via_str(self):
        assert to_money(0.1) == Decimal("0.10")


class TestPriceLine:
    def test_line_without_modifiers(self):
        line = price_line(Decimal("50000"), 2)

        assert line.subtotal == Decimal("100000.00")
        assert line.modifiers_total == Decimal("0.00")
        assert line.total_price == Decimal("100000.00")

    def test_modifiers_are_charged_per_unit(self):
        """Two Large coffees pay the size upcharge twice."""
        line = price_line(Decimal("25000"), 2, [_modifier("10000")])

        assert line.subtotal == Decimal("50000.00")
        assert line.modifiers_total == Decimal("20000.00")
        assert line.total_price == Decimal("70000.00")

    def test_multiple_modifiers_sum(self):
        line = price_line(Decimal("10.50"), 3, [_modifier("1.25"), _modifier("0.50")])

        assert line.modifiers_total == Decimal("5.25")
        assert line.total_price == Decimal("36.75")


class TestApplyTax:
    def test_default_rate_is_ten_percent(self):
        totals = apply_tax(Decimal("120000"))

        assert totals.tax_amount == Decimal("12000.00")
        assert totals.total_amount == Decimal("132000.00")

    def test_discount_is_subtracted_after_tax(self):
        totals = apply_tax(Decimal("100.00"), Decimal("5.00"), tax_rate=Decimal("0.10"))

        assert totals.total_amount == Decimal("105.00")

    def test_total_never_goes_negative(self):
        totals = apply_tax(Decimal("10.00"), Decimal("50.00"), tax_rate=Decimal("0.10"))

        assert totals.total_amount == Decimal("0.00")

    def test_as_dict_has_all_money_fields(self):
        assert set(apply_tax(Decimal("1")).as_dict()) == {
            "subtotal",
            "tax_amount",
            "discount_amount",
            "total_amount",
        }


class TestComputeTotals:
    def test_order_totals_skip_lines_of_rejected_orders(self):
        lines = [
            PricedLine(Decimal("30.00"), "pending"),
            PricedLine(Decimal("20.00"), "rejected"),
            PricedLine(Decimal("10.00")),
        ]

        totals = compute_order_totals(lines, tax_rate=Decimal("0.10"))

        assert totals.subtotal == Decimal("40.00")
        assert totals.total_amount == Decimal("44.00")

    def test_session_totals_exclude_rejected_orders(self):
        orders = [_Order("100000"), _Order("50000", "rejected"), _Order("25000", "served")]

        totals = compute_session_totals(orders)

        assert totals.subtotal == Decimal("125000.00")
        assert totals.tax_amount == Decimal("12500.00")
        assert totals.total_amount == Decimal("137500.00")

    def test_empty_session_is_zero(self):
        assert compute_session_totals([]).total_amount == Decimal("0.00")


class TestPricingProperties:
    @given(subtotal=money, discount=money)
    @settings(max_examples=100)
    def test_total_formula(self, subtotal, discount):
        """total = max(0, subtotal + tax - discount), every field two places."""
        totals = apply_tax(subtotal, discount, tax_rate=Decimal("0.10"))

        expected = max(totals.subtotal + totals.tax_amount - totals.discount_amount, Decimal("0"))
        assert totals.total_amount == expected
        for value in totals.as_dict().values():
            assert value == value.quantize(Decimal("0.01"))
        assert totals.total_amount >= 0

    @given(
        subtotals=st.lists(money, max_size=10),
        rejected=st.lists(st.booleans(), max_size=10),
    )
    @settings(max_examples=100)
    def test_rejected_orders_never_contribute(self, subtotals, rejected):
        orders = [
            _Order(str(s), "rejected" if rejected[i % len(rejected)] else "pending")
            if rejected
            else _Order(str(s))
            for i, s in enumerate(subtotals)
        ]
        kept = [o for o in orders if o.status != "rejected"]

        assert compute_session_totals(orders) == compute_session_totals(kept)

    @given(
        base=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("100000"), places=2),
        quantity=st.integers(min_value=1, max_value=99),
        adjustments=st.lists(
            st.decimals(min_value=Decimal("0"), max_value=Decimal("50000"), places=2),
            max_size=4,
        ),
    )
    @settings(max_examples=100)
    def test_line_total_is_subtotal_plus_modifiers(self, base, quantity, adjustments):
        line = price_line(base, quantity, [_modifier(str(a)) for a in adjustments])

        assert line.subtotal == to_money(base * quantity)
        assert line.modifiers_total == to_money(sum(adjustments, Decimal("0")) * quantity)
        assert line.total_price == line.subtotal + line.modifiers_total

    @pytest.mark.parametrize("quantity", [1, 2, 99])
    def test_quantity_scales_linearly(self, quantity):
        assert price_line(Decimal("1.10"), quantity).total_price == Decimal("1.10") * quantity
