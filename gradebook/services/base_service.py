# gradebook/services/base_service.py
"""Base service with common school-scoped CRUD operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Type, Any, Optional, TypeVar, Generic

from ..core.exceptions import NotFound

T = TypeVar('T')


class BaseService(Generic[T]):
    resource_name = "Resource"

    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    def scoped(self, stmt, school_id: Any):
        """Restrict ``stmt`` to one school; ``None`` means system-wide (superadmin)."""
        if school_id is not None and hasattr(self.model, 'school_id'):
            stmt = stmt.where(self.model.school_id == school_id)
        return stmt

    async def get(self, id: Any) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_scoped(self, id: Any, school_id: Any) -> Optional[T]:
        stmt = self.scoped(select(self.model).where(self.model.id == id), school_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, id: Any, school_id: Any) -> T:
        """Fetch within a school; rows of other schools are reported as missing."""
        obj = await self.get_scoped(id, school_id)
        if not obj:
            raise NotFound(self.resource_name)
        return obj

    async def hard_delete(self, obj: T) -> None:
        """Permanently delete record from database"""
        await self.db.delete(obj)
        await self.db.commit()
