"""
Bills router.
Waiter view of tables waiting for their bill.
"""

from fastapi import APIRouter, Depends

from rest_api.routers._common import get_bill_service
from rest_api.services.domain import BillService
from shared.utils.schemas import ApiResponse, SessionSummaryOutput


router = APIRouter(prefix="/api/bills", tags=["bills"])


@router.get("/pending", response_model=ApiResponse[list[SessionSummaryOutput]])
def list_pending_bill_requests(
    service: BillService = Depends(get_bill_service),
) -> ApiResponse[list[SessionSummaryOutput]]:
    """Active sessions that asked for the bill, oldest request first."""
    sessions = service.list_pending_bill_requests()
    return ApiResponse(data=[SessionSummaryOutput.model_validate(s) for s in sessions])
