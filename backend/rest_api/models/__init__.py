"""
SQLAlchemy ORM Models Package.

Models are organized into domain-specific modules:
- base: Base class, shared column types, TimestampMixin
- table: Table, TableSession
- order: Order, OrderItem, OrderItemModifier
- menu: MenuItem, ModifierGroup, ModifierOption (read-only for the core)
- payment: PaymentTransaction
"""

from .base import Base, TimestampMixin, ID_TYPE, MONEY
from .table import Table, TableSession
from .order import Order, OrderItem, OrderItemModifier
from .menu import MenuItem, ModifierGroup, ModifierOption
from .payment import PaymentTransaction

__all__ = [
    "Base",
    "TimestampMixin",
    "ID_TYPE",
    "MONEY",
    "Table",
    "TableSession",
    "Order",
    "OrderItem",
    "OrderItemModifier",
    "MenuItem",
    "ModifierGroup",
    "ModifierOption",
    "PaymentTransaction",
]
