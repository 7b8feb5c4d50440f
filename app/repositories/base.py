from datetime import datetime, timezone
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import func
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.errors import NotFoundError

ModelT = TypeVar("ModelT", bound=SQLModel)


class BaseRepository(Generic[ModelT]):
    """CRUD, filtered count and pagination over one table."""

    model: type[ModelT]
    entity: str

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        await self.db.commit()
        await self.db.refresh(entity)
        return entity

    async def find_by_id(self, entity_id: int) -> ModelT | None:
        return await self.db.get(self.model, entity_id)

    async def find_and_count(
        self,
        conditions: Sequence[Any],
        page: int,
        limit: int,
        order_by: Sequence[Any] = (),
        options: Sequence[Any] = (),
    ) -> tuple[list[ModelT], int]:
        query = (
            select(self.model)
            .where(*conditions)
            .options(*options)
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        rows = (await self.db.exec(query)).all()
        return list(rows), await self.count(*conditions)

    async def update(self, entity_id: int, patch: dict[str, Any]) -> ModelT:
        entity = await self.db.get(self.model, entity_id)
        if entity is None:
            raise NotFoundError(self.entity, entity_id)
        entity.sqlmodel_update(patch)
        entity.updated_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(entity)
        return entity

    async def delete(self, entity_id: int) -> bool:
        entity = await self.db.get(self.model, entity_id)
        if entity is None:
            raise NotFoundError(self.entity, entity_id)
        await self.db.delete(entity)
        await self.db.commit()
        return True

    async def count(self, *conditions: Any) -> int:
        query = select(func.count()).select_from(self.model).where(*conditions)
        return (await self.db.exec(query)).one()
