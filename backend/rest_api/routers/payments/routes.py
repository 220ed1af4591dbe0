"""
Payments router.
MoMo e-wallet flow for table sessions plus the gateway IPN callback.

The callback is unauthenticated and not rate limited; it relies on the
payload signature. It always answers 204 so the gateway does not retry
forever; failures are logged with the session id and masked gateway
references.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from starlette.concurrency import run_in_threadpool

from rest_api.routers._common import get_payment_service
from rest_api.services.payments import PaymentService
from shared.config.logging import mask_reference, payment_logger as logger
from shared.security.actor import Actor, current_actor
from shared.security.rate_limit import PAYMENT_RATE_LIMIT, limiter
from shared.utils.exceptions import AppException
from shared.utils.schemas import (
    ApiResponse,
    PaymentInitiateOutput,
    PaymentStatusOutput,
    ReasonRequest,
    SessionOutput,
)


router = APIRouter(prefix="/api", tags=["payments"])


@router.post(
    "/sessions/{session_id}/payment/momo/initiate",
    response_model=ApiResponse[PaymentInitiateOutput],
)
@limiter.limit(PAYMENT_RATE_LIMIT)
async def initiate_momo_payment(
    request: Request,
    session_id: int,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[PaymentInitiateOutput]:
    """Create a MoMo payment for the session total and return the pay links."""
    result = await service.initiate_payment(session_id, actor)
    return ApiResponse(data=result, message="Payment initiated")


@router.get(
    "/sessions/{session_id}/payment/status",
    response_model=ApiResponse[PaymentStatusOutput],
)
def get_payment_status(
    session_id: int,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[PaymentStatusOutput]:
    return ApiResponse(data=service.get_payment_status(session_id, actor))


@router.get(
    "/sessions/{session_id}/payment/momo/query",
    response_model=ApiResponse[dict[str, Any]],
)
@limiter.limit(PAYMENT_RATE_LIMIT)
async def query_momo_payment(
    request: Request,
    session_id: int,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[dict[str, Any]]:
    return ApiResponse(data=await service.query_gateway_status(session_id, actor))


@router.post(
    "/sessions/{session_id}/payment/momo/cancel",
    response_model=ApiResponse[SessionOutput],
)
def cancel_momo_payment(
    session_id: int,
    body: ReasonRequest | None = None,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor | None = Depends(current_actor),
) -> ApiResponse[SessionOutput]:
    reason = body.reason if body else None
    session = service.cancel_payment(session_id, reason, actor)
    return ApiResponse(data=SessionOutput.model_validate(session), message="Payment cancelled")


@router.post("/payment/momo/callback", status_code=status.HTTP_204_NO_CONTENT)
async def momo_callback(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
) -> Response:
    """Gateway IPN. Always 204; not rate limited."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("MoMo callback with unreadable body")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    if not isinstance(payload, dict):
        logger.warning("MoMo callback body is not an object")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    try:
        await run_in_threadpool(service.process_callback, payload)
    except AppException as e:
        logger.warning(
            "MoMo callback rejected",
            error=e.detail,
            order_id=mask_reference(str(payload.get("orderId") or "")),
            trans_id=mask_reference(str(payload.get("transId") or "")),
        )
    except Exception as e:
        logger.error(
            "MoMo callback processing failed",
            error=str(e),
            order_id=mask_reference(str(payload.get("orderId") or "")),
            exc_info=True,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
