"""
Bill Domain Service.

Bill requests and running bill previews for active sessions.
"""

from datetime import datetime, timezone
from typing import Sequence

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from rest_api.models import TableSession
from rest_api.repositories import SessionRepository
from rest_api.services.base_service import BaseService
from rest_api.services.domain import session_state
from rest_api.services.domain.pricing import compute_session_totals
from rest_api.services.events import Notifier
from shared.config.settings import settings
from shared.config.logging import session_logger as logger
from shared.utils.exceptions import SessionNotFoundError
from shared.utils.schemas import BillLineOutput, BillPreviewOutput


class BillService(BaseService):
    """Bill requests and previews."""

    def __init__(
        self,
        db: Session,
        notifier: Notifier | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        super().__init__(db, notifier, background_tasks)
        self._sessions = SessionRepository(db)

    def request_bill(self, session_id: int) -> TableSession:
        """
        Flag an active session as asking for the bill.

        Repeated requests keep the first timestamp.
        """
        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            session_state.ensure_active(session)
            if session.bill_requested_at is None:
                session.bill_requested_at = datetime.now(timezone.utc)
            session_state.recompute_totals(session)

        logger.info("Bill requested", session_id=session_id, table_id=session.table_id)
        return self._sessions.get(session_id)

    def get_bill_preview(self, session_id: int) -> BillPreviewOutput:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        totals = compute_session_totals(session.orders, discount=session.discount_amount)
        return BillPreviewOutput(
            session_id=session.id,
            session_number=session.session_number,
            table_id=session.table_id,
            orders=[
                BillLineOutput(
                    order_id=order.id,
                    order_number=order.order_number,
                    status=order.status,
                    subtotal=order.subtotal,
                    item_count=len(order.items),
                )
                for order in session.orders
            ],
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            currency=settings.currency,
            bill_requested_at=session.bill_requested_at,
        )

    def list_pending_bill_requests(self) -> Sequence[TableSession]:
        return self._sessions.find_pending_bill_requests()
