# discount_service/crud/base.py
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

from discount_service.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Generic tenant-scoped CRUD operations.

    Every model handled here carries a ``tenant_id`` column and every
    lookup filters on it.
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    def get(self, db: Session, *, id: str, tenant_id: str) -> Optional[ModelType]:
        return (
            db.query(self.model)
            .filter(self.model.id == id, self.model.tenant_id == tenant_id)
            .first()
        )

    def remove(self, db: Session, *, id: str, tenant_id: str) -> Optional[ModelType]:
        obj = self.get(db, id=id, tenant_id=tenant_id)
        if not obj:
            return None
        db.delete(obj)
        db.commit()
        return obj
