from app.cache import keys
from app.cache.decorators import read_through
from app.cache.layer import CacheLayer
from app.core.errors import NotFoundError
from app.models import (
    Pagination,
    Task,
    TaskCreate,
    TaskFilters,
    TaskList,
    TaskRead,
    TaskReadWithProject,
    TaskUpdate,
)
from app.repositories.project_repository import ProjectRepository
from app.repositories.task_repository import TaskRepository

import logging

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(
        self,
        tasks: TaskRepository,
        projects: ProjectRepository,
        cache: CacheLayer,
        cache_ttl: int = 600,
    ):
        self.tasks = tasks
        self.projects = projects
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def create_task(self, task_data: TaskCreate) -> TaskRead:
        if await self.projects.find_by_id(task_data.project_id) is None:
            raise NotFoundError("project", task_data.project_id)

        task = await self.tasks.insert(Task.model_validate(task_data))
        await self._invalidate(None, task.project_id)
        logger.info(f"Created task {task.id} in project {task.project_id}")
        return TaskRead.model_validate(task)

    @read_through(keys.task_key, TaskReadWithProject)
    async def get_task_by_id(self, task_id: int):
        task = await self.tasks.find_by_id_with_project(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    async def update_task(self, task_id: int, task_data: TaskUpdate) -> TaskRead:
        task = await self.tasks.find_by_id(task_id)
        if task is None:
            raise NotFoundError("task", task_id)

        # update() mutates the same identity-mapped row
        old_project_id = task.project_id
        changes = task_data.changes()
        new_project_id = changes.get("project_id", old_project_id)
        moved = new_project_id != old_project_id

        if moved and await self.projects.find_by_id(new_project_id) is None:
            raise NotFoundError("project", new_project_id, detail="target project")

        task = await self.tasks.update(task_id, changes)

        await self._invalidate(task_id, old_project_id)
        if moved:
            await self._invalidate(None, new_project_id)
            logger.info(f"Moved task {task_id} from {old_project_id} to {new_project_id}")
        return TaskRead.model_validate(task)

    async def delete_task(self, task_id: int) -> bool:
        task = await self.tasks.find_by_id(task_id)
        if task is None:
            raise NotFoundError("task", task_id)

        project_id = task.project_id
        await self.tasks.delete(task_id)
        await self._invalidate(task_id, project_id)
        logger.info(f"Deleted task {task_id}")
        return True

    @read_through(keys.project_tasks_key, list[TaskReadWithProject])
    async def get_tasks_by_project(self, project_id: int):
        if await self.projects.find_by_id(project_id) is None:
            raise NotFoundError("project", project_id)
        return await self.tasks.find_by_project(project_id)

    async def get_all_tasks(self, filters: TaskFilters) -> TaskList:
        # Always served from the store
        conditions = []
        if filters.status:
            conditions.append(Task.status == filters.status)
        if filters.priority:
            conditions.append(Task.priority == filters.priority)
        if filters.project_id:
            conditions.append(Task.project_id == filters.project_id)

        rows, total = await self.tasks.find_and_count_with_project(
            conditions, filters.page, filters.limit
        )
        return TaskList(
            tasks=[TaskReadWithProject.model_validate(row) for row in rows],
            pagination=Pagination.build(filters.page, filters.limit, total),
        )

    async def _invalidate(self, task_id: int | None, project_id: int):
        scope = keys.task_scope(task_id, project_id)
        await self.cache.invalidate(scope.keys, scope.patterns)
