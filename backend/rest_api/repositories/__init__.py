"""
Repositories - data access for the session and order aggregates.

Usage:
    from rest_api.repositories import SessionRepository

    repo = SessionRepository(db)
    session = repo.find_active_for_table(table_id)
"""

from .base import BaseRepository, RepositoryFilters
from .session import SessionRepository, SessionFilters
from .order import OrderRepository, OrderFilters
from .menu import MenuRepository

__all__ = [
    "BaseRepository",
    "RepositoryFilters",
    "SessionRepository",
    "SessionFilters",
    "OrderRepository",
    "OrderFilters",
    "MenuRepository",
]
