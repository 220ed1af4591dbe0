"""
Domain Services - application layer for table sessions and orders.

Services contain business logic and orchestrate operations.
They use Repositories for data access and emit domain events.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Pure aggregate logic lives beside the services:
    pricing        - line and order/session totals
    order_state    - order and item state machines
    session_state  - session state machine, claim, completion

Usage:
    from rest_api.services.domain import OrderService

    service = OrderService(db, notifier, background_tasks)
    order = service.accept_order(order_id, actor)
"""

from .session_service import SessionService
from .order_service import OrderService
from .bill_service import BillService

__all__ = [
    "SessionService",
    "OrderService",
    "BillService",
]
