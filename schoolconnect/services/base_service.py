# schoolconnect/services/base_service.py
"""Base service with common data-access operations."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Type, Any, Dict, Optional, TypeVar, Generic

# Define generic type
T = TypeVar('T')

class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id, self.model.is_deleted.is_(False))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_paginated(
        self,
        page: int = 1,
        size: int = 20,
        order_by: str = "created_at",
        sort: str = "desc",
        **filters
    ) -> Dict[str, Any]:
        """Get paginated, non-deleted rows matching equality filters"""
        offset = (page - 1) * size

        conditions = [self.model.is_deleted.is_(False)]
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                conditions.append(getattr(self.model, key) == value)

        count_stmt = select(func.count()).select_from(self.model).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar()

        stmt = select(self.model).where(*conditions)
        if order_by and hasattr(self.model, order_by):
            order_field = getattr(self.model, order_by)
            stmt = stmt.order_by(order_field.desc() if sort.lower() == "desc" else order_field.asc())

        result = await self.db.execute(stmt.offset(offset).limit(size))
        items = result.scalars().all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "size": size,
            "total_pages": (total + size - 1) // size,
            "has_next": page * size < total,
            "has_previous": page > 1,
        }

    async def create(self, obj_in: Dict) -> T:
        obj = self.model(**obj_in)
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj
