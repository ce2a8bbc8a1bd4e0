"""
Base Repository: Repository Pattern (GoF)

Generic CRUD over a single SQLAlchemy model. Concrete repositories add the
query methods their service needs.
"""
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from sqlalchemy.orm import Session

from app.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):

    def __init__(self, model: Type[ModelType], db: Session):
        self.model = model
        self.db = db

    def get_by_id(self, entity_id: Any) -> Optional[ModelType]:
        return self.db.get(self.model, entity_id)

    def get_all(self) -> List[ModelType]:
        return self.db.query(self.model).all()

    def list_paginated(self, page: int = 1, page_size: int = 20, **filters) -> Tuple[List[ModelType], int]:
        q = self.db.query(self.model)
        for field, value in filters.items():
            if value is not None:
                q = q.filter(getattr(self.model, field) == value)
        total = q.count()
        items = q.offset((page - 1) * page_size).limit(page_size).all()
        return items, total

    def create(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def add(self, obj: ModelType) -> ModelType:
        """Stage ``obj`` in the current transaction without committing."""
        self.db.add(obj)
        self.db.flush()
        return obj

    def update(self, obj: ModelType, updates: Dict[str, Any], commit: bool = True) -> ModelType:
        for field, value in updates.items():
            setattr(obj, field, value)
        if commit:
            self.db.commit()
            self.db.refresh(obj)
        else:
            self.db.flush()
        return obj

    def delete(self, obj: ModelType) -> None:
        self.db.delete(obj)
        self.db.commit()
