"""
Rate limiting utilities using slowapi.
Protects the payment endpoints, which fan out to the external gateway.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.settings import settings
from shared.config.logging import get_logger

logger = get_logger(__name__)

# Create limiter instance using client IP as key
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

PAYMENT_RATE_LIMIT = settings.payment_rate_limit


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi rejections in the API error envelope."""
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
        limit=str(exc.detail),
    )
    response = JSONResponse(
        status_code=429,
        content={
            "success": False,
            "reason": "rate_limited",
            "message": f"Rate limit exceeded: {exc.detail}",
            "errors": [],
        },
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
