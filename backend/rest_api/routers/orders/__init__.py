"""
Order routers - /api/orders/*
Staff-facing order and item lifecycle.
"""

from .routes import router

__all__ = ["router"]
