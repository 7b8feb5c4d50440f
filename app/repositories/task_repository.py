from typing import Any, Sequence

from sqlalchemy.orm import selectinload
from sqlmodel import select

from app.models import Task
from app.repositories.base import BaseRepository

NEWEST_FIRST = (Task.created_at.desc(), Task.id.desc())


class TaskRepository(BaseRepository[Task]):
    model = Task
    entity = "task"

    async def find_by_id_with_project(self, task_id: int) -> Task | None:
        query = (
            select(Task)
            .where(Task.id == task_id)
            .options(selectinload(Task.project))
            .execution_options(populate_existing=True)
        )
        return (await self.db.exec(query)).first()

    async def find_by_project(self, project_id: int) -> list[Task]:
        query = (
            select(Task)
            .where(Task.project_id == project_id)
            .options(selectinload(Task.project))
            .order_by(*NEWEST_FIRST)
            .execution_options(populate_existing=True)
        )
        return list((await self.db.exec(query)).all())

    async def find_ids_by_project(self, project_id: int) -> list[int]:
        query = select(Task.id).where(Task.project_id == project_id)
        return list((await self.db.exec(query)).all())

    async def find_and_count_with_project(
        self, conditions: Sequence[Any], page: int, limit: int
    ) -> tuple[list[Task], int]:
        return await self.find_and_count(
            conditions,
            page,
            limit,
            order_by=NEWEST_FIRST,
            options=(selectinload(Task.project),),
        )
