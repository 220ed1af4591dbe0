"""
Order line construction.

Resolves requested menu items and modifier options in two batch queries,
snapshots names and prices onto new OrderItem rows and prices each line.
"""

from typing import Sequence

from rest_api.models import Order, OrderItem, OrderItemModifier
from rest_api.repositories import MenuRepository
from rest_api.services.domain.pricing import ModifierSnapshot, compute_order_totals, price_line
from shared.config.constants import MenuItemStatus, OrderItemStatus
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import OrderItemRequest

ACTIVE_OPTION = "active"


def build_order_items(menu: MenuRepository, requests: Sequence[OrderItemRequest]) -> list[OrderItem]:
    """
    New pending OrderItem rows for ``requests``, not yet attached to an order.

    Every menu item must exist and be orderable. Unknown or inactive
    modifier options are skipped.
    """
    menu_items = menu.get_menu_items(r.menu_item_id for r in requests)
    for request in requests:
        menu_item = menu_items.get(request.menu_item_id)
        if menu_item is None or menu_item.status not in MenuItemStatus.ORDERABLE:
            raise NotFoundError("Menu item", request.menu_item_id)

    options = menu.get_modifier_options(
        m.option_id for r in requests for m in r.modifiers
    )

    items: list[OrderItem] = []
    for request in requests:
        menu_item = menu_items[request.menu_item_id]

        snapshots = []
        for selection in request.modifiers:
            option = options.get(selection.option_id)
            if option is None or option.status != ACTIVE_OPTION:
                continue
            snapshots.append(
                ModifierSnapshot(
                    modifier_group_id=option.group_id,
                    modifier_option_id=option.id,
                    price_adjustment=option.price_adjustment,
                    group_name=option.group.name,
                    option_name=option.name,
                )
            )

        line = price_line(menu_item.price, request.quantity, snapshots)
        item = OrderItem(
            menu_item_id=menu_item.id,
            quantity=request.quantity,
            unit_price=menu_item.price,
            subtotal=line.subtotal,
            total_price=line.total_price,
            status=OrderItemStatus.PENDING,
            special_instructions=request.special_instructions or None,
            item_name=menu_item.name,
            item_description=menu_item.description,
        )
        item.modifiers = [
            OrderItemModifier(
                modifier_group_id=s.modifier_group_id,
                modifier_option_id=s.modifier_option_id,
                price_adjustment=s.price_adjustment,
                group_name=s.group_name,
                option_name=s.option_name,
            )
            for s in snapshots
        ]
        items.append(item)
    return items


def refresh_order_totals(order: Order) -> None:
    """Recompute an order's money fields from its lines."""
    totals = compute_order_totals(order.items, discount=order.discount_amount or 0)
    order.subtotal = totals.subtotal
    order.tax_amount = totals.tax_amount
    order.discount_amount = totals.discount_amount
    order.total_amount = totals.total_amount
