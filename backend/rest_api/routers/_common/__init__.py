"""
Common utilities shared across routers.
"""

from .dependencies import (
    get_session_service,
    get_order_service,
    get_bill_service,
    get_payment_service,
)

__all__ = [
    "get_session_service",
    "get_order_service",
    "get_bill_service",
    "get_payment_service",
]
