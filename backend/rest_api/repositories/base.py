"""
Base Repository implementation.
Provides common data access patterns with eager loading and row locking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from shared.config.constants import Limits


ModelT = TypeVar("ModelT")


@dataclass
class RepositoryFilters:
    """Base filters for repository queries."""

    limit: int = Limits.DEFAULT_PAGE_SIZE
    offset: int = 0

    def __post_init__(self):
        """Clamp pagination to sane bounds."""
        self.limit = min(max(1, self.limit), Limits.MAX_PAGE_SIZE)
        self.offset = max(0, self.offset)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract base repository with common operations.

    Subclasses must implement:
    - model: the SQLAlchemy model class
    - _base_query(): base select with the aggregate's eager loading
    """

    def __init__(self, db: Session):
        self._db = db

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    @abstractmethod
    def _base_query(self) -> Select:
        """Return base query with the aggregate's children eagerly loaded."""
        ...

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        """Apply entity-specific filters. Default: none."""
        return query

    def get(self, entity_id: int) -> ModelT | None:
        """Load one aggregate by primary key, children included."""
        return self._db.scalar(
            self._base_query().where(self.model.id == entity_id)
        )

    def get_for_update(self, entity_id: int) -> ModelT | None:
        """
        Load one row with SELECT ... FOR UPDATE.

        Serializes concurrent writers on the same aggregate root for the
        rest of the transaction. Children are loaded by a follow-up
        selectin query since FOR UPDATE cannot be combined with outer joins.
        """
        return self._db.scalar(
            select(self.model)
            .where(self.model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def find_all(self, filters: RepositoryFilters | None = None) -> Sequence[ModelT]:
        """Find aggregates matching ``filters``, paginated."""
        filters = filters or RepositoryFilters()
        query = self._apply_filters(self._base_query(), filters)
        query = query.limit(filters.limit).offset(filters.offset)
        return self._db.execute(query).scalars().unique().all()
