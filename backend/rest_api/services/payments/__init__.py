"""
Payment Services - MoMo e-wallet integration.

Provides:
- MomoClient: signed create/query requests and IPN signature checks
- PaymentService: initiate, callback, status, cancel for table sessions
- Circuit breaker for gateway resilience
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    momo_breaker,
    get_all_breaker_stats,
)
from .momo_client import (
    MomoClient,
    get_momo_client,
    get_error_message,
    encode_extra_data,
    decode_extra_data,
)
from .payment_service import PaymentService

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    "momo_breaker",
    "get_all_breaker_stats",
    # Gateway
    "MomoClient",
    "get_momo_client",
    "get_error_message",
    "encode_extra_data",
    "decode_extra_data",
    # Coordinator
    "PaymentService",
]
