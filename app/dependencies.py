from fastapi import Depends, Request
from sqlmodel.ext.asyncio.session import AsyncSession
from typing_extensions import Annotated

from app.cache.layer import CacheLayer
from app.core.config import SettingsDep
from app.database import get_db
from app.repositories.project_repository import ProjectRepository
from app.repositories.task_repository import TaskRepository
from app.services.project_service import ProjectService
from app.services.task_service import TaskService


def get_cache(request: Request) -> CacheLayer:
    """The process-wide cache created in the app lifespan."""
    return request.app.state.cache


DbDep = Annotated[AsyncSession, Depends(get_db)]
CacheDep = Annotated[CacheLayer, Depends(get_cache)]


def get_project_service(db: DbDep, cache: CacheDep, settings: SettingsDep) -> ProjectService:
    return ProjectService(
        ProjectRepository(db), TaskRepository(db), cache, settings.cache_ttl_seconds
    )


def get_task_service(db: DbDep, cache: CacheDep, settings: SettingsDep) -> TaskService:
    return TaskService(
        TaskRepository(db), ProjectRepository(db), cache, settings.cache_ttl_seconds
    )


ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]
TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
