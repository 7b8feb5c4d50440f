from datetime import datetime, time, timezone
from typing import Sequence

from app.cache import keys
from app.cache.decorators import read_through
from app.cache.layer import CacheLayer
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models import (
    Pagination,
    Project,
    ProjectCreate,
    ProjectFilters,
    ProjectList,
    ProjectRead,
    ProjectReadWithTasks,
    ProjectUpdate,
    Task,
)
from app.repositories.project_repository import ProjectRepository
from app.repositories.task_repository import TaskRepository

import logging

logger = logging.getLogger(__name__)


def _list_key(filters: ProjectFilters) -> str:
    return keys.project_list_key(filters.model_dump(mode="json", exclude_none=True))


class ProjectService:
    def __init__(
        self,
        projects: ProjectRepository,
        tasks: TaskRepository,
        cache: CacheLayer,
        cache_ttl: int = 600,
    ):
        self.projects = projects
        self.tasks = tasks
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def create_project(self, project_data: ProjectCreate) -> ProjectRead:
        project = await self.projects.insert(Project.model_validate(project_data))
        # A new row can land on any page of any filtered listing
        await self.cache.delete_pattern(keys.PROJECT_LIST_PATTERN)
        logger.info(f"Created project {project.id}")
        return ProjectRead.model_validate(project)

    @read_through(keys.project_key, ProjectReadWithTasks)
    async def get_project_by_id(self, project_id: int):
        project = await self.projects.find_by_id_with_tasks(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    @read_through(_list_key, ProjectList)
    async def get_projects(self, filters: ProjectFilters):
        conditions = []
        if filters.name:
            conditions.append(Project.name.icontains(filters.name, autoescape=True))
        if filters.description:
            conditions.append(
                Project.description.icontains(filters.description, autoescape=True)
            )
        if filters.status:
            conditions.append(Project.status == filters.status)
        if filters.initial_date and filters.final_date:
            if filters.initial_date > filters.final_date:
                raise ValidationError(
                    "project filters", detail="initial_date is after final_date"
                )
            start = datetime.combine(filters.initial_date, time.min, tzinfo=timezone.utc)
            end = datetime.combine(filters.final_date, time.max, tzinfo=timezone.utc)
            conditions.append(Project.created_at.between(start, end))

        rows, total = await self.projects.find_and_count(
            conditions,
            filters.page,
            filters.limit,
            order_by=(Project.created_at.desc(), Project.id.desc()),
        )
        return ProjectList(
            projects=[ProjectRead.model_validate(row) for row in rows],
            pagination=Pagination.build(filters.page, filters.limit, total),
        )

    async def update_project(
        self, project_id: int, project_data: ProjectUpdate
    ) -> ProjectRead:
        project = await self.projects.update(project_id, project_data.changes())
        await self._invalidate(
            project_id, await self.tasks.find_ids_by_project(project_id)
        )
        logger.info(f"Updated project {project_id}")
        return ProjectRead.model_validate(project)

    async def delete_project(self, project_id: int) -> bool:
        linked = await self.tasks.count(Task.project_id == project_id)
        if linked > 0:
            raise ConflictError(
                "project", project_id, detail=f"has {linked} linked tasks"
            )

        await self.projects.delete(project_id)
        await self._invalidate(project_id)
        logger.info(f"Deleted project {project_id}")
        return True

    async def _invalidate(self, project_id: int, task_ids: Sequence[int] = ()):
        scope = keys.project_scope(project_id, task_ids)
        await self.cache.invalidate(scope.keys, scope.patterns)
