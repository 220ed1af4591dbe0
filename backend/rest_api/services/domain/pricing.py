"""
Pricing engine.

Pure arithmetic over Decimal amounts, rounded to two decimal places
(half-up). Every total in the system (order, session, bill preview,
payment amount) goes through these functions.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from shared.config.constants import OrderStatus
from shared.config.settings import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Convert ``value`` to a Decimal rounded to two places."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ModifierSnapshot:
    """A selected modifier option, copied from the menu at order time."""

    modifier_group_id: int
    modifier_option_id: int
    price_adjustment: Decimal
    group_name: str
    option_name: str


@dataclass(frozen=True)
class LinePrice:
    subtotal: Decimal
    modifiers_total: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class PricedLine:
    """A line total tagged with the status of the order it belongs to."""

    total_price: Decimal
    order_status: str | None = None


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
        }


def price_line(base_price: Any, quantity: int, modifiers: Iterable[Any] = ()) -> LinePrice:
    """
    Price one order line.

    Each selected modifier is charged per unit of the line:
    ``modifiers_total = sum(adjustments) * quantity``.
    """
    base = to_money(base_price)
    adjustments = sum((to_money(m.price_adjustment) for m in modifiers), ZERO)

    subtotal = to_money(base * quantity)
    modifiers_total = to_money(adjustments * quantity)
    return LinePrice(
        subtotal=subtotal,
        modifiers_total=modifiers_total,
        total_price=to_money(subtotal + modifiers_total),
    )


def apply_tax(subtotal: Any, discount: Any = ZERO, tax_rate: Decimal | None = None) -> OrderTotals:
    """Canonical totals formula: ``total = subtotal + subtotal * rate - discount``, floored at 0."""
    rate = settings.tax_rate if tax_rate is None else Decimal(str(tax_rate))
    subtotal = to_money(subtotal)
    discount = to_money(discount)
    tax = to_money(subtotal * rate)
    total = max(to_money(subtotal + tax - discount), ZERO)
    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=total,
    )


def compute_order_totals(
    lines: Iterable[Any],
    discount: Any = ZERO,
    tax_rate: Decimal | None = None,
) -> OrderTotals:
    """
    Totals over line items.

    Lines tagged with a rejected ``order_status`` are excluded.
    Accepts PricedLine, LinePrice or OrderItem rows (anything exposing
    ``total_price``).
    """
    subtotal = sum(
        (
            to_money(line.total_price)
            for line in lines
            if getattr(line, "order_status", None) != OrderStatus.REJECTED
        ),
        ZERO,
    )
    return apply_tax(subtotal, discount, tax_rate)


def compute_session_totals(
    orders: Iterable[Any],
    discount: Any = ZERO,
    tax_rate: Decimal | None = None,
) -> OrderTotals:
    """Totals over a session's orders, excluding rejected ones."""
    subtotal = sum(
        (to_money(order.subtotal) for order in orders if order.status != OrderStatus.REJECTED),
        ZERO,
    )
    return apply_tax(subtotal, discount, tax_rate)
