"""
Redis Channel Naming.

Three logical audiences: the customers watching one table, the global
kitchen feed and the global waiter feed.
"""

from __future__ import annotations

CHANNEL_KITCHEN = "kitchen"
CHANNEL_WAITER = "waiter"


def _validate_positive_id(id_value: int, name: str) -> None:
    """Validate that ID is a positive integer."""
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_table(table_id: int) -> str:
    """Channel for customer displays at one table."""
    _validate_positive_id(table_id, "table_id")
    return f"table:{table_id}"


def channel_kitchen() -> str:
    """Channel for the kitchen display feed."""
    return CHANNEL_KITCHEN


def channel_waiter() -> str:
    """Channel for the waiter feed."""
    return CHANNEL_WAITER
