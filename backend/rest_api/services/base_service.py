"""
Base Service for the session/order application layer.

Architecture:
    Router (thin) -> Service (business logic) -> Repository (data access) -> Model

Every mutating operation follows the same shape:
    validate input -> load (and lock) aggregate -> mutate -> commit -> notify

Usage:
    class OrderService(BaseService):
        def accept_order(self, order_id, actor):
            with self._transaction():
                order = self._orders.get_for_update(order_id)
                ...
            self._emit(lambda: [domain_event.order_status_changed(order, previous, actor)])
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterable, Iterator

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from rest_api.services.events import DomainEvent, Notifier, NullNotifier, notify_safely
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit

logger = get_logger(__name__)


class BaseService:
    """
    Common infrastructure for domain services.

    Holds the db session, the notifier and the BackgroundTasks queue that
    post-commit notifications are scheduled on. Without an explicit queue
    the service keeps its own; callers may await ``service.background_tasks()``
    to flush it.
    """

    def __init__(
        self,
        db: Session,
        notifier: Notifier | None = None,
        background_tasks: BackgroundTasks | None = None,
    ):
        self._db = db
        self._notifier = notifier or NullNotifier()
        self._background_tasks = background_tasks if background_tasks is not None else BackgroundTasks()

    @property
    def db(self) -> Session:
        """Database session."""
        return self._db

    @property
    def background_tasks(self) -> BackgroundTasks:
        return self._background_tasks

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """
        One unit of work.

        Commits on normal exit. Any exception raised inside the block, or
        by the commit itself, rolls the session back and propagates.
        """
        try:
            yield
            safe_commit(self._db)
        except Exception:
            self._db.rollback()
            raise

    def _emit(self, build: Callable[[], Iterable[DomainEvent]]) -> None:
        """
        Schedule events for publication after the response is sent.

        ``build`` runs immediately, after commit. A failure while building
        payloads is logged and swallowed: the write already succeeded.
        """
        try:
            events = list(build())
        except Exception as e:
            logger.error(
                "Failed to build event payloads",
                service=type(self).__name__,
                error=str(e),
            )
            return
        for event in events:
            self._background_tasks.add_task(notify_safely, self._notifier, event)
