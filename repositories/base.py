"""
Base repository for the data access layer.

Repositories never commit: transaction boundaries belong to the service layer
(see ``domain.models.database.atomic``). Writes that race with the cutoff
job or a webhook go through ``_conditional_update`` instead of the ORM.
"""

from typing import Generic, TypeVar, Optional, Type
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.orm import Session
from abc import ABC, abstractmethod

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType], ABC):
    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    @abstractmethod
    def get_by_id(self, entity_id: UUID) -> Optional[ModelType]:
        """Look up by the model's own primary key column"""

    def create(self, entity: ModelType) -> ModelType:
        """Add and flush so generated keys are available before commit"""
        self.db.add(entity)
        self.db.flush()
        return entity

    def exists(self, entity_id: UUID) -> bool:
        return self.get_by_id(entity_id) is not None

    def _conditional_update(self, *criteria, **values) -> bool:
        """
        Compare-and-swap style UPDATE.

        Pending ORM changes are flushed first so the guard sees them. Returns
        True only if exactly one row matched ``criteria`` and was written;
        False means the caller lost (or the guard did not hold) and nothing
        changed.
        """
        self.db.flush()
        result = self.db.execute(
            update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        won = result.rowcount == 1
        if won:
            self.db.expire_all()
        return won
