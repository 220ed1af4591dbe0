"""
Utilities module: Exceptions, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
)
from shared.utils.schemas import ApiResponse, ErrorResponse

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "InvalidStateError",
    "InvalidTransitionError",
    # schemas
    "ApiResponse",
    "ErrorResponse",
]
