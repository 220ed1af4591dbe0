"""
Shared Pydantic schemas used across the application.

Request models accept both camelCase (web/mobile clients) and snake_case
field names. Response models are built from ORM rows and serialize
money as exact decimal strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from shared.config.constants import Limits


# =============================================================================
# Common Types
# =============================================================================

SessionStatus = Literal["active", "completed", "cancelled"]
OrderStatus = Literal["pending", "accepted", "rejected", "preparing", "ready", "served", "completed"]
OrderItemStatus = Literal["pending", "confirmed", "preparing", "ready", "served", "cancelled"]
PaymentStatus = Literal["unpaid", "pending", "paid", "failed", "refunded"]

T = TypeVar("T")


class RequestModel(BaseModel):
    """Base for request bodies: camelCase aliases, snake_case accepted too."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class OutputModel(BaseModel):
    """Base for response payloads read straight from ORM rows."""

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Envelope
# =============================================================================


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: {"success": true, "data": ..., "message": ...}."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    """Error envelope rendered by the exception handlers."""

    success: bool = False
    reason: str
    message: str
    errors: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Session Schemas
# =============================================================================


class CreateSessionRequest(RequestModel):
    """Open a session at a table."""

    table_id: int = Field(alias="tableId", gt=0)


class CompleteSessionRequest(RequestModel):
    """Close a session paid out of band (cash, card, ...)."""

    payment_method: str | None = Field(default=None, alias="paymentMethod", max_length=20)
    transaction_id: str | None = Field(default=None, alias="transactionId", max_length=100)


class ReasonRequest(RequestModel):
    """Free-text reason for cancellations and rejections."""

    reason: str | None = Field(default=None, max_length=Limits.MAX_REASON_LENGTH)


class TableSessionCheckOutput(BaseModel):
    """Lightweight answer to "does this table have an open session?"."""

    has_active_session: bool
    session_id: int | None = None
    session_number: str | None = None


# =============================================================================
# Order Schemas
# =============================================================================


class ModifierSelection(RequestModel):
    """A modifier option picked for one line."""

    option_id: int = Field(alias="optionId", gt=0)
    # Accepted for client compatibility; each option applies once per unit
    quantity: int = Field(default=1, ge=1, le=Limits.MAX_QUANTITY)


class OrderItemRequest(RequestModel):
    """One line of a new order."""

    menu_item_id: int = Field(alias="menuItemId", gt=0)
    quantity: int = Field(ge=Limits.MIN_QUANTITY, le=Limits.MAX_QUANTITY)
    special_instructions: str | None = Field(
        default=None, alias="specialInstructions", max_length=Limits.MAX_INSTRUCTIONS_LENGTH
    )
    modifiers: list[ModifierSelection] = Field(default_factory=list)


class CreateOrderRequest(RequestModel):
    """Order submission: a non-empty list of lines."""

    items: list[OrderItemRequest] = Field(min_length=1, max_length=Limits.MAX_ITEMS_PER_ORDER)


class UpdateStatusRequest(RequestModel):
    """Generic status change for orders and order items."""

    status: str = Field(min_length=1, max_length=20)


class OrderItemModifierOutput(OutputModel):
    id: int
    modifier_group_id: int
    modifier_option_id: int
    group_name: str
    option_name: str
    price_adjustment: Decimal


class OrderItemOutput(OutputModel):
    id: int
    menu_item_id: int
    item_name: str
    item_description: str | None = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    total_price: Decimal
    status: str
    special_instructions: str | None = None
    modifiers: list[OrderItemModifierOutput] = Field(default_factory=list)


class OrderOutput(OutputModel):
    id: int
    order_number: str
    session_id: int | None = None
    table_id: int
    customer_id: int | None = None
    waiter_id: int | None = None
    status: str
    rejection_reason: str | None = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    accepted_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    items: list[OrderItemOutput] = Field(default_factory=list)


class SessionOutput(OutputModel):
    id: int
    session_number: str
    table_id: int
    customer_id: int | None = None
    status: str
    payment_status: str
    payment_method: str | None = None
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    bill_requested_at: datetime | None = None
    notes: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    orders: list[OrderOutput] = Field(default_factory=list)


class SessionSummaryOutput(OutputModel):
    """Session row without its orders (history listings)."""

    id: int
    session_number: str
    table_id: int
    customer_id: int | None = None
    status: str
    payment_status: str
    payment_method: str | None = None
    total_amount: Decimal
    started_at: datetime | None = None
    completed_at: datetime | None = None


# =============================================================================
# Billing Schemas
# =============================================================================


class BillLineOutput(BaseModel):
    order_id: int
    order_number: str
    status: str
    subtotal: Decimal
    item_count: int


class BillPreviewOutput(BaseModel):
    """Running bill for an active session, computed on read."""

    session_id: int
    session_number: str
    table_id: int
    orders: list[BillLineOutput]
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    bill_requested_at: datetime | None = None


# =============================================================================
# Payment Schemas
# =============================================================================


class PaymentInitiateOutput(BaseModel):
    pay_url: str | None = None
    deeplink: str | None = None
    qr_code_url: str | None = None
    request_id: str
    order_id: str
    amount: Decimal


class PaymentStatusOutput(BaseModel):
    session_id: int
    status: str
    payment_status: str
    payment_method: str | None = None
    total_amount: Decimal
    momo_order_id: str | None = None
    momo_transaction_id: str | None = None
    momo_response_code: str | None = None
    momo_error_message: str | None = None
    momo_payment_time: datetime | None = None


class CallbackResult(BaseModel):
    success: bool
    duplicate: bool = False
    session_id: int | None = None
    payment_status: str | None = None
