"""
Base repository with the lookups and updates shared by table repositories.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import Table, select, update
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


def to_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(value)


def jsonb_to_model(data: dict | None, model_class: type[ModelT]) -> ModelT:
    """Deserialize JSONB to a Pydantic model, defaulting when empty."""
    return model_class.model_validate(data or {})


class BaseRepository(ABC, Generic[ModelT]):
    """
    Base repository for tables keyed by a UUID id column.

    Rows are created by the storefront sync; repositories here read rows
    and update the columns the poller owns.

    Subclasses must implement:
    - table property: Return the SQLAlchemy Table
    - _row_to_model: Convert database row to Pydantic model
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table:
        """SQLAlchemy table for this repository."""
        pass

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT:
        """Convert database row to Pydantic model."""
        pass

    def get_by_id(self, id: UUID | str) -> ModelT | None:
        stmt = select(self.table).where(self.table.c.id == to_uuid(id))
        row = self.session.execute(stmt).fetchone()
        if row is None:
            return None
        return self._row_to_model(row)

    def update_by_id(self, id: UUID | str, **kwargs) -> bool:
        """
        Update specific columns of one row.

        Returns:
            True if the row was updated, False if not found
        """
        stmt = (
            update(self.table)
            .where(self.table.c.id == to_uuid(id))
            .values(**kwargs)
        )
        result = self.session.execute(stmt)
        return result.rowcount > 0
