"""
Payment Coordinator.

Drives the MoMo e-wallet flow for a table session:

    initiate  -> session payment_status=pending, gateway order created
    callback  -> signature verified, amount checked, session settled or failed
    cancel    -> customer abandons the payment, session cancelled

Every write path appends one PaymentTransaction audit row. The gateway
create call happens inside the open transaction so a gateway failure
leaves no trace in the database.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import PaymentTransaction, TableSession
from rest_api.repositories import OrderRepository, SessionRepository
from rest_api.services.base_service import BaseService
from rest_api.services.domain import session_state
from rest_api.services.events import Notifier, domain_event
from rest_api.services.payments.momo_client import (
    RESULT_SUCCESS,
    MomoClient,
    decode_extra_data,
    get_error_message,
)
from shared.config.constants import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    SessionStatus,
    TransactionStatus,
)
from shared.config.logging import mask_reference, payment_logger as logger
from shared.config.settings import settings
from shared.security.actor import Actor
from shared.utils.exceptions import (
    AlreadyPaidError,
    AmountMismatchError,
    ForbiddenError,
    InvalidStateError,
    PaymentAmountOutOfRangeError,
    SessionNotFoundError,
    SignatureInvalidError,
    ValidationError,
)
from shared.utils.schemas import CallbackResult, PaymentInitiateOutput, PaymentStatusOutput

AMOUNT_TOLERANCE = Decimal("0.01")


def _parse_amount(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid callback amount", field="amount")


def _parse_result_code(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid callback resultCode", field="resultCode")


class PaymentService(BaseService):
    """Coordinates session payments through the MoMo gateway."""

    def __init__(
        self,
        db: Session,
        gateway: MomoClient,
        notifier: Notifier | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        super().__init__(db, notifier, background_tasks)
        self._gateway = gateway
        self._sessions = SessionRepository(db)
        self._orders = OrderRepository(db)

    def _load_owned(self, session_id: int, actor: Actor | None, action: str, lock: bool = False) -> TableSession:
        session = self._sessions.get_for_update(session_id) if lock else self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if actor is None or session.customer_id != actor.id:
            raise ForbiddenError(action, session_id=session_id)
        return session

    # =========================================================================
    # Initiate
    # =========================================================================

    async def initiate_payment(self, session_id: int, actor: Actor | None) -> PaymentInitiateOutput:
        """
        Start a MoMo payment for the session's current total.

        Checks, in order: session exists, caller owns it, session is not
        terminal, not already paid, has a billable order with a positive
        total, and the total fits the gateway's bounds.
        """
        with self._transaction():
            session = self._load_owned(session_id, actor, "pay for this session", lock=True)

            if session.status in SessionStatus.TERMINAL:
                raise InvalidStateError(
                    "Session", session.status, [SessionStatus.ACTIVE], session_id=session_id
                )
            if session.payment_status == PaymentStatus.PAID:
                raise AlreadyPaidError(session_id)

            billable = [o for o in session.orders if o.status != OrderStatus.REJECTED]
            if not billable:
                raise ValidationError(
                    "Cannot initiate payment: session has no orders", session_id=session_id
                )

            totals = session_state.recompute_totals(session)
            amount = totals.total_amount
            if amount <= 0:
                raise ValidationError(
                    "Cannot initiate payment: total amount must be greater than zero",
                    session_id=session_id,
                )
            if amount < settings.momo_min_amount or amount > settings.momo_max_amount:
                raise PaymentAmountOutOfRangeError(
                    amount, settings.momo_min_amount, settings.momo_max_amount, session_id=session_id
                )

            session.payment_status = PaymentStatus.PENDING
            session.payment_method = PaymentMethod.MOMO

            created = await self._gateway.create_payment(
                amount,
                f"Payment for session {session.session_number}",
                {"sessionId": session.id, "userId": actor.id},
            )

            session.momo_request_id = created["request_id"]
            session.momo_order_id = created["order_id"]
            session.momo_payment_amount = amount
            session.momo_raw_response = created
            self._db.add(
                PaymentTransaction(
                    session_id=session.id,
                    payment_method=PaymentMethod.MOMO,
                    request_id=created["request_id"],
                    amount=amount,
                    status=TransactionStatus.PENDING,
                    response_code=str(created["result_code"]),
                    message=created.get("message"),
                    raw_response=created,
                )
            )

        logger.info(
            "MoMo payment initiated",
            session_id=session_id,
            amount=str(amount),
            request_id=mask_reference(created["request_id"]),
        )
        return PaymentInitiateOutput(
            pay_url=created.get("pay_url"),
            deeplink=created.get("deeplink"),
            qr_code_url=created.get("qr_code_url"),
            request_id=created["request_id"],
            order_id=created["order_id"],
            amount=amount,
        )

    # =========================================================================
    # Callback (IPN)
    # =========================================================================

    def process_callback(self, payload: dict[str, Any]) -> CallbackResult:
        """
        Apply a gateway IPN.

        Raises before writing anything when the signature is invalid, the
        extraData cannot be decoded, the session is unknown or the amount
        differs from the recorded payment amount. A repeated transId is
        acknowledged without writes. A session that was cancelled or
        closed while the attempt was open keeps its state; the outcome is
        still recorded and logged for reconciliation.
        """
        if not self._gateway.verify_callback_signature(payload):
            raise SignatureInvalidError(order_id=payload.get("orderId"))

        try:
            extra = decode_extra_data(payload.get("extraData"))
        except ValueError:
            raise ValidationError("Invalid extraData format", field="extraData")
        raw_session_id = extra.get("sessionId")
        if raw_session_id is None:
            raise ValidationError("Session ID not found in callback data", field="extraData")
        try:
            session_id = int(raw_session_id)
        except (TypeError, ValueError):
            raise ValidationError("Invalid session ID in callback data", field="extraData")

        trans_id = str(payload.get("transId") or "") or None
        result_code = _parse_result_code(payload.get("resultCode"))
        received = _parse_amount(payload.get("amount"))
        message = payload.get("message")

        closed = 0
        with self._transaction():
            session = self._sessions.get_for_update(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)

            expected = Decimal(session.momo_payment_amount or 0)
            if abs(expected - received) > AMOUNT_TOLERANCE:
                raise AmountMismatchError(expected, received, session_id=session_id)

            if trans_id and session.momo_transaction_id == trans_id:
                logger.info(
                    "Duplicate MoMo callback ignored",
                    session_id=session_id,
                    trans_id=mask_reference(trans_id),
                )
                return CallbackResult(
                    success=True,
                    duplicate=True,
                    session_id=session_id,
                    payment_status=session.payment_status,
                )

            succeeded = result_code == RESULT_SUCCESS
            session_open = session.status == SessionStatus.ACTIVE
            session.momo_transaction_id = trans_id
            session.momo_response_code = str(result_code)
            session.momo_raw_response = dict(payload)

            if not session_open:
                # Cancelled or closed out of band while the attempt was open:
                # keep the outcome on record for staff, leave the session as is
                logger.warning(
                    "MoMo callback for a closed session needs reconciliation",
                    session_id=session_id,
                    session_status=session.status,
                    payment_status=session.payment_status,
                    result_code=result_code,
                    amount=str(received),
                    trans_id=mask_reference(trans_id),
                )
                if succeeded:
                    session.momo_payment_time = datetime.now(timezone.utc)
            elif succeeded:
                self._orders.lock_items(o.id for o in session.orders)
                closed = session_state.settle(session)
                session.payment_method = PaymentMethod.MOMO
                session.payment_transaction_id = trans_id
                session.momo_payment_time = datetime.now(timezone.utc)
                session.momo_error_message = None
            else:
                session.payment_status = PaymentStatus.FAILED
                session.momo_error_message = message or get_error_message(result_code)

            self._db.add(
                PaymentTransaction(
                    session_id=session.id,
                    payment_method=PaymentMethod.MOMO,
                    transaction_id=trans_id,
                    request_id=payload.get("requestId"),
                    amount=received,
                    status=TransactionStatus.COMPLETED if succeeded else TransactionStatus.FAILED,
                    response_code=str(result_code),
                    message=message,
                    raw_response=dict(payload),
                )
            )
            payment_status = session.payment_status

        logger.info(
            "MoMo callback processed",
            session_id=session_id,
            result_code=result_code,
            payment_status=payment_status,
            trans_id=mask_reference(trans_id),
        )
        if succeeded and session_open:
            self._emit(lambda: [domain_event.session_completed(session, closed)])

        return CallbackResult(success=True, session_id=session_id, payment_status=payment_status)

    # =========================================================================
    # Status / cancel / query
    # =========================================================================

    def get_payment_status(self, session_id: int, actor: Actor | None) -> PaymentStatusOutput:
        session = self._load_owned(session_id, actor, "view this payment")
        return PaymentStatusOutput(
            session_id=session.id,
            status=session.status,
            payment_status=session.payment_status,
            payment_method=session.payment_method,
            total_amount=session.total_amount,
            momo_order_id=session.momo_order_id,
            momo_transaction_id=session.momo_transaction_id,
            momo_response_code=session.momo_response_code,
            momo_error_message=session.momo_error_message,
            momo_payment_time=session.momo_payment_time,
        )

    def cancel_payment(self, session_id: int, reason: str | None, actor: Actor | None) -> TableSession:
        """Abandon a payment: the session is cancelled and the attempt marked failed."""
        with self._transaction():
            session = self._load_owned(session_id, actor, "cancel this payment", lock=True)
            if session.payment_status == PaymentStatus.PAID:
                raise AlreadyPaidError(session_id)

            note = f"Cancelled by user: {(reason or '').strip() or 'no reason given'}"
            session_state.cancel(session, reason)
            session.payment_status = PaymentStatus.FAILED
            session.momo_error_message = note

            self._db.add(
                PaymentTransaction(
                    session_id=session.id,
                    payment_method=session.payment_method or PaymentMethod.MOMO,
                    request_id=session.momo_request_id,
                    amount=session.momo_payment_amount or session.total_amount,
                    status=TransactionStatus.CANCELLED,
                    message=note,
                    raw_response={
                        "reason": reason,
                        "cancelled_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
            )

        logger.info("Payment cancelled", session_id=session_id, customer_id=actor.id)
        return self._sessions.get(session_id)

    async def query_gateway_status(self, session_id: int, actor: Actor | None) -> dict[str, Any]:
        """Ask the gateway about the session's latest payment attempt."""
        session = self._load_owned(session_id, actor, "view this payment")
        if not session.momo_order_id or not session.momo_request_id:
            raise ValidationError(
                "No MoMo payment has been initiated for this session", session_id=session_id
            )
        data = await self._gateway.query_payment_status(session.momo_order_id, session.momo_request_id)
        return {
            "session_id": session.id,
            "order_id": session.momo_order_id,
            "result_code": data.get("resultCode"),
            "message": data.get("message") or get_error_message(data.get("resultCode")),
            "trans_id": data.get("transId"),
            "amount": data.get("amount"),
        }

    def list_transactions(self, session_id: int) -> list[PaymentTransaction]:
        """Audit rows for a session, oldest first."""
        return list(
            self._db.execute(
                select(PaymentTransaction)
                .where(PaymentTransaction.session_id == session_id)
                .order_by(PaymentTransaction.id)
            ).scalars()
        )
