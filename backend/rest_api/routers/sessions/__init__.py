"""
Session routers - /api/sessions/*
Table session lifecycle, ordering into a session and bills.
"""

from .routes import router

__all__ = ["router"]
