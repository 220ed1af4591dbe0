"""
Menu Repository - read-only lookups into the menu catalog.

Returns fully-assembled rows keyed by id so order creation can snapshot
prices and names in a fixed number of queries.
"""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from rest_api.models import MenuItem, ModifierOption


class MenuRepository:
    """Batch lookups for menu items and modifier options."""

    def __init__(self, db: Session):
        self._db = db

    def get_menu_items(self, item_ids: Iterable[int]) -> dict[int, MenuItem]:
        """Menu items by id; soft-deleted items are treated as absent."""
        ids = set(item_ids)
        if not ids:
            return {}
        rows = self._db.execute(
            select(MenuItem).where(MenuItem.id.in_(ids), MenuItem.is_deleted.is_(False))
        ).scalars().all()
        return {row.id: row for row in rows}

    def get_modifier_options(self, option_ids: Iterable[int]) -> dict[int, ModifierOption]:
        """Modifier options by id, each with its group loaded."""
        ids = set(option_ids)
        if not ids:
            return {}
        rows = self._db.execute(
            select(ModifierOption)
            .options(joinedload(ModifierOption.group))
            .where(ModifierOption.id.in_(ids))
        ).scalars().all()
        return {row.id: row for row in rows}
