from datetime import date

from fastapi import APIRouter, Query, status

from app.core.i18n import ApiResponse, TranslatorDep
from app.dependencies import ProjectServiceDep
from app.models import (
    ProjectCreate,
    ProjectFilters,
    ProjectList,
    ProjectRead,
    ProjectReadWithTasks,
    ProjectStatus,
    ProjectUpdate,
)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post(
    "", response_model=ApiResponse[ProjectRead], status_code=status.HTTP_201_CREATED
)
async def create_project(
    project_data: ProjectCreate, service: ProjectServiceDep, t: TranslatorDep
):
    """Create a new project"""
    project = await service.create_project(project_data)
    return t.respond(project, "projectCreated", status.HTTP_201_CREATED)


@router.get("", response_model=ApiResponse[ProjectList])
async def get_projects(
    service: ProjectServiceDep,
    t: TranslatorDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    name: str | None = None,
    description: str | None = None,
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
    initial_date: date | None = None,
    final_date: date | None = None,
):
    filters = ProjectFilters(
        page=page,
        limit=limit,
        name=name,
        description=description,
        status=project_status,
        initial_date=initial_date,
        final_date=final_date,
    )
    return t.respond(await service.get_projects(filters), "projects")


@router.get("/{project_id}", response_model=ApiResponse[ProjectReadWithTasks])
async def get_project(project_id: int, service: ProjectServiceDep, t: TranslatorDep):
    """Get a specific project with its tasks"""
    return t.respond(await service.get_project_by_id(project_id), "project")


@router.put("/{project_id}", response_model=ApiResponse[ProjectRead])
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    service: ProjectServiceDep,
    t: TranslatorDep,
):
    project = await service.update_project(project_id, project_data)
    return t.respond(project, "projectUpdated")


@router.delete("/{project_id}", response_model=ApiResponse[None])
async def delete_project(project_id: int, service: ProjectServiceDep, t: TranslatorDep):
    """Delete a project; refused while it still has tasks"""
    await service.delete_project(project_id)
    return t.respond(None, "projectDeleted")
