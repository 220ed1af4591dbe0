"""
Payment routers - MoMo initiate/status/cancel and the gateway callback.
"""

from .routes import router

__all__ = ["router"]
