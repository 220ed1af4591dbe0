"""
Service dependencies for routers.

Each request gets services bound to its db session, the process notifier
and the request's BackgroundTasks, so notifications go out after the
response is sent.

Usage:
    @router.post("/{order_id}/accept")
    def accept(order_id: int, service: OrderService = Depends(get_order_service)):
        ...
"""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from rest_api.services.domain import BillService, OrderService, SessionService
from rest_api.services.events import Notifier, get_notifier
from rest_api.services.payments import MomoClient, PaymentService, get_momo_client
from shared.infrastructure.db import get_db


def get_session_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> SessionService:
    return SessionService(db, notifier, background_tasks)


def get_order_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier, background_tasks)


def get_bill_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> BillService:
    return BillService(db, notifier, background_tasks)


def get_payment_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    gateway: MomoClient = Depends(get_momo_client),
) -> PaymentService:
    return PaymentService(db, gateway, notifier, background_tasks)
