from sqlalchemy.orm import selectinload
from sqlmodel import select

from app.models import Project
from app.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    model = Project
    entity = "project"

    async def find_by_id_with_tasks(self, project_id: int) -> Project | None:
        query = (
            select(Project)
            .where(Project.id == project_id)
            .options(selectinload(Project.tasks))
            .execution_options(populate_existing=True)
        )
        return (await self.db.exec(query)).first()
