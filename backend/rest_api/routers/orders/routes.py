"""
Orders router.
Staff-facing order lifecycle: listing, accept/reject, status moves,
item status and adding items.
"""

from datetime import date as Date

from fastapi import APIRouter, Depends, Query

from rest_api.routers._common import get_order_service
from rest_api.services.domain import OrderService
from shared.config.constants import Limits, OrderStatus
from shared.security.actor import Actor, current_actor
from shared.utils.schemas import (
    ApiResponse,
    CreateOrderRequest,
    OrderItemOutput,
    OrderOutput,
    ReasonRequest,
    UpdateStatusRequest,
)


router = APIRouter(prefix="/api/orders", tags=["orders"])


def _parse_statuses(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    statuses = [part.strip() for part in raw.split(",") if part.strip()]
    return statuses or None


@router.get("", response_model=ApiResponse[list[OrderOutput]])
def list_orders(
    status: str | None = Query(default=None, description="Comma-separated statuses"),
    table_id: int | None = Query(default=None, alias="tableId"),
    created_on: Date | None = Query(default=None, alias="date"),
    limit: int = Query(default=Limits.DEFAULT_PAGE_SIZE, ge=1, le=Limits.MAX_PAGE_SIZE),
    service: OrderService = Depends(get_order_service),
) -> ApiResponse[list[OrderOutput]]:
    orders = service.list_orders(_parse_statuses(status), table_id, created_on, limit)
    return ApiResponse(data=[OrderOutput.model_validate(o) for o in orders])


@router.get("/table/{table_id}", response_model=ApiResponse[OrderOutput])
def get_active_order_by_table(
    table_id: int,
    service: OrderService = Depends(get_order_service),
) -> ApiResponse[OrderOutput]:
    order = service.get_active_order_by_table(table_id)
    return ApiResponse(data=OrderOutput.model_validate(order))


@router.get("/{order_id}", response_model=ApiResponse[OrderOutput])
def get_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
) -> ApiResponse[OrderOutput]:
    order = service.get_order(order_id)
    return ApiResponse(data=OrderOutput.model_validate(order))


@router.post("/{order_id}/accept", response_model=ApiResponse[OrderOutput])
def accept_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    order = service.accept_order(order_id, actor)
    return ApiResponse(data=OrderOutput.model_validate(order), message="Order accepted")


@router.post("/{order_id}/reject", response_model=ApiResponse[OrderOutput])
def reject_order(
    order_id: int,
    body: ReasonRequest | None = None,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    reason = body.reason if body else None
    order = service.reject_order(order_id, reason, actor)
    return ApiResponse(data=OrderOutput.model_validate(order), message="Order rejected")


@router.post("/{order_id}/complete", response_model=ApiResponse[OrderOutput])
def complete_order(
    order_id: int,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    order = service.complete_order(order_id, actor)
    return ApiResponse(data=OrderOutput.model_validate(order), message="Order completed")


@router.patch("/{order_id}/status", response_model=ApiResponse[OrderOutput])
def update_order_status(
    order_id: int,
    body: UpdateStatusRequest,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    """Generic status move; accept and reject keep their dedicated side effects."""
    if body.status == OrderStatus.ACCEPTED:
        order = service.accept_order(order_id, actor)
    elif body.status == OrderStatus.REJECTED:
        order = service.reject_order(order_id, None, actor)
    else:
        order = service.update_order_status(order_id, body.status, actor)
    return ApiResponse(data=OrderOutput.model_validate(order))


@router.post("/{order_id}/items", response_model=ApiResponse[OrderOutput])
def add_items_to_order(
    order_id: int,
    body: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    order = service.add_items_to_order(order_id, body.items, actor)
    return ApiResponse(data=OrderOutput.model_validate(order), message="Items added")


@router.patch("/items/{item_id}/status", response_model=ApiResponse[OrderItemOutput])
def update_order_item_status(
    item_id: int,
    body: UpdateStatusRequest,
    service: OrderService = Depends(get_order_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderItemOutput]:
    item = service.update_order_item_status(item_id, body.status, actor)
    return ApiResponse(data=OrderItemOutput.model_validate(item))
