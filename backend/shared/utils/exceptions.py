"""
Centralized HTTP exceptions for consistent error handling.

Every exception carries a stable ``reason`` string that clients can switch
on; the HTTP status communicates the category (400 validation, 404 not
found, 409 conflict or invalid transition, 5xx unexpected or external).

Usage:
    from shared.utils.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError("Session", session_id)
    raise InvalidTransitionError("order", "pending", "preparing", ["accepted", "rejected"])
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    reason: str = "error"

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        errors: list[dict[str, Any]] | None = None,
        **log_context: Any,
    ):
        self.errors = errors or []

        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, reason=self.reason, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Table", 12)
        raise NotFoundError("Menu item", item_id, order_id=order_id)
    """

    reason = "not_found"

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} not found: {entity_id}"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class SessionNotFoundError(NotFoundError):
    """Table session not found."""

    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Session", session_id, **log_context)


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("pay for this session", session_id=session_id)
    """

    reason = "forbidden"

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Raised before any write.

    Usage:
        raise ValidationError("Rejection reason is required")
        raise ValidationError("Invalid quantity", field="quantity", value=-1)
    """

    reason = "validation_error"

    def __init__(self, detail: str, errors: list[dict[str, Any]] | None = None, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            errors=errors,
            **log_context,
        )


class PaymentAmountOutOfRangeError(ValidationError):
    """Payment total falls outside the gateway's accepted bounds."""

    reason = "amount_out_of_range"

    def __init__(self, amount: Any, minimum: int, maximum: int, **log_context: Any):
        detail = f"Payment amount {amount} is outside the accepted range ({minimum} - {maximum})"
        super().__init__(detail, amount=str(amount), **log_context)


class SignatureInvalidError(ValidationError):
    """Gateway callback signature did not verify."""

    reason = "signature_invalid"

    def __init__(self, **log_context: Any):
        super().__init__("Invalid payment callback signature", **log_context)


class AmountMismatchError(ValidationError):
    """Callback amount differs from the amount recorded when the payment started."""

    reason = "amount_mismatch"

    def __init__(self, expected: Any, received: Any, **log_context: Any):
        detail = f"Payment amount mismatch: expected {expected}, received {received}"
        super().__init__(detail, expected=str(expected), received=str(received), **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Payment already in progress")
    """

    reason = "conflict"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class SessionConflictError(ConflictError):
    """Table already has an active session."""

    reason = "session_conflict"

    def __init__(self, table_id: int, **log_context: Any):
        super().__init__(
            "Table already has an active session",
            table_id=table_id,
            **log_context,
        )


class AlreadyPaidError(ConflictError):
    """Session is already paid."""

    reason = "already_paid"

    def __init__(self, session_id: int, **log_context: Any):
        super().__init__(f"Session {session_id} is already paid", session_id=session_id, **log_context)


class InvalidStateError(ConflictError):
    """Entity is in a state that does not allow the operation."""

    reason = "invalid_state"

    def __init__(
        self,
        entity: str,
        current_state: str,
        expected_states: list[str] | None = None,
        **log_context: Any,
    ):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is '{current_state}', expected: {states_str}"
        else:
            detail = f"{entity} cannot be '{current_state}' for this operation"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidTransitionError(ConflictError):
    """
    State machine violation.

    Names the current state, the attempted state and the allowed set;
    an empty allowed set is reported as a terminal state.
    """

    reason = "invalid_transition"

    def __init__(
        self,
        entity: str,
        from_status: str,
        to_status: str,
        allowed: list[str] | None = None,
        **log_context: Any,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = list(allowed or [])

        allowed_str = ", ".join(self.allowed) if self.allowed else "(none - terminal state)"
        detail = (
            f'Invalid transition: cannot change {entity} from "{from_status}" '
            f'to "{to_status}". Allowed transitions: {allowed_str}'
        )
        super().__init__(
            detail,
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to process payment", session_id=123)
    """

    reason = "internal_error"

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Database error during {operation}. Please try again."
        super().__init__(detail, operation=operation, **log_context)


class ExternalServiceError(AppException):
    """External service error (502 or 503)."""

    reason = "external_service_error"

    def __init__(
        self,
        service: str,
        message: str | None = None,
        is_unavailable: bool = False,
        retry_after: int | None = None,
        **log_context: Any,
    ):
        if is_unavailable:
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            detail = f"{service} is temporarily unavailable"
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
            detail = f"Error communicating with {service}"
        if message:
            detail = f"{detail}: {message}"

        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        super().__init__(
            status_code=status_code,
            detail=detail,
            log_level="error",
            headers=headers,
            service=service,
            **log_context,
        )
