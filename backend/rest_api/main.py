"""
REST API main application.
Entry point for the FastAPI REST server.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from rest_api.core.cors import configure_cors
from rest_api.core.exceptions import register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers.bills import router as bills_router
from rest_api.routers.orders import router as orders_router
from rest_api.routers.payments import router as payments_router
from rest_api.routers.sessions import router as sessions_router
from rest_api.services.payments import get_all_breaker_stats
from shared.config.settings import settings
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler


app = FastAPI(
    title="Table Session REST API",
    description="Table sessions, orders and MoMo payments for restaurant floors",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

register_exception_handlers(app)
configure_cors(app)
register_middlewares(app)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/api/health")
def health_check():
    """Basic health check plus payment circuit breaker state."""
    return {
        "status": "healthy",
        "service": "rest-api",
        "environment": settings.environment,
        "circuit_breakers": get_all_breaker_stats(),
    }


# =============================================================================
# Routers
# =============================================================================

app.include_router(sessions_router)
app.include_router(orders_router)
app.include_router(payments_router)
app.include_router(bills_router)
