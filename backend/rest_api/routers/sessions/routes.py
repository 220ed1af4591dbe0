"""
Sessions router.
Opens, claims, orders into, bills and closes table sessions.

Thin controller: validation, locking and notifications live in
SessionService / BillService.
"""

from fastapi import APIRouter, Depends, Query, status

from rest_api.routers._common import get_bill_service, get_session_service
from rest_api.services.domain import BillService, SessionService
from shared.security.actor import Actor, current_actor, require_actor
from shared.utils.schemas import (
    ApiResponse,
    BillPreviewOutput,
    CompleteSessionRequest,
    CreateOrderRequest,
    CreateSessionRequest,
    OrderOutput,
    ReasonRequest,
    SessionOutput,
    SessionSummaryOutput,
    TableSessionCheckOutput,
)


router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post(
    "",
    response_model=ApiResponse[SessionOutput],
    status_code=status.HTTP_201_CREATED,
)
def create_session(
    body: CreateSessionRequest,
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[SessionOutput]:
    """Open a session at a table (one active session per table)."""
    session = service.create_session(body.table_id, actor)
    return ApiResponse(data=SessionOutput.model_validate(session), message="Session created")


@router.get("/table/{table_id}", response_model=ApiResponse[SessionOutput])
def get_active_session_by_table(
    table_id: int,
    service: SessionService = Depends(get_session_service),
) -> ApiResponse[SessionOutput]:
    session = service.get_active_session_by_table(table_id)
    return ApiResponse(data=SessionOutput.model_validate(session))


@router.get("/table/{table_id}/check", response_model=ApiResponse[TableSessionCheckOutput])
def check_table_session(
    table_id: int,
    service: SessionService = Depends(get_session_service),
) -> ApiResponse[TableSessionCheckOutput]:
    return ApiResponse(data=service.check_table_session(table_id))


@router.get("/my-sessions", response_model=ApiResponse[list[SessionSummaryOutput]])
def get_my_sessions(
    limit: int = Query(default=20, ge=1, le=100),
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[list[SessionSummaryOutput]]:
    """The calling customer's sessions, newest first."""
    actor = require_actor(actor, "view session history")
    sessions = service.get_customer_sessions(actor.id, limit)
    return ApiResponse(data=[SessionSummaryOutput.model_validate(s) for s in sessions])


@router.get("/{session_id}", response_model=ApiResponse[SessionOutput])
def get_session(
    session_id: int,
    service: SessionService = Depends(get_session_service),
) -> ApiResponse[SessionOutput]:
    session = service.get_session(session_id)
    return ApiResponse(data=SessionOutput.model_validate(session))


@router.post("/{session_id}/claim", response_model=ApiResponse[SessionOutput])
def claim_session(
    session_id: int,
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[SessionOutput]:
    """Bind the calling customer to the session (first writer wins)."""
    session = service.claim_session(session_id, actor)
    return ApiResponse(data=SessionOutput.model_validate(session))


@router.post(
    "/{session_id}/orders",
    response_model=ApiResponse[OrderOutput],
    status_code=status.HTTP_201_CREATED,
)
def create_order_in_session(
    session_id: int,
    body: CreateOrderRequest,
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[OrderOutput]:
    order = service.create_order_in_session(session_id, body.items, actor)
    return ApiResponse(data=OrderOutput.model_validate(order), message="Order created")


@router.post("/{session_id}/complete", response_model=ApiResponse[SessionOutput])
def complete_session(
    session_id: int,
    body: CompleteSessionRequest,
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[SessionOutput]:
    """Close a session paid out of band (cash, card, ...)."""
    session = service.complete_session(session_id, body.payment_method, body.transaction_id, actor)
    return ApiResponse(data=SessionOutput.model_validate(session), message="Session completed")


@router.post("/{session_id}/cancel", response_model=ApiResponse[SessionOutput])
def cancel_session(
    session_id: int,
    body: ReasonRequest | None = None,
    service: SessionService = Depends(get_session_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[SessionOutput]:
    reason = body.reason if body else None
    session = service.cancel_session(session_id, reason, actor)
    return ApiResponse(data=SessionOutput.model_validate(session), message="Session cancelled")


@router.post("/{session_id}/bill-request", response_model=ApiResponse[SessionOutput])
def request_bill(
    session_id: int,
    service: BillService = Depends(get_bill_service),
) -> ApiResponse[SessionOutput]:
    session = service.request_bill(session_id)
    return ApiResponse(data=SessionOutput.model_validate(session), message="Bill requested")


@router.get("/{session_id}/bill", response_model=ApiResponse[BillPreviewOutput])
def get_bill_preview(
    session_id: int,
    service: BillService = Depends(get_bill_service),
) -> ApiResponse[BillPreviewOutput]:
    return ApiResponse(data=service.get_bill_preview(session_id))
