"""
Bill routers - /api/bills/*
"""

from .routes import router

__all__ = ["router"]
