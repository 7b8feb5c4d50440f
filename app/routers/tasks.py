from fastapi import APIRouter, Path, Query, status

from app.core.i18n import ApiResponse, TranslatorDep
from app.dependencies import TaskServiceDep
from app.models import (
    TaskCreate,
    TaskFilters,
    TaskList,
    TaskPayload,
    TaskPriority,
    TaskRead,
    TaskReadWithProject,
    TaskStatus,
    TaskUpdate,
)

router = APIRouter(tags=["tasks"])


@router.post(
    "/projects/{project_id}/tasks",
    response_model=ApiResponse[TaskRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    task_data: TaskPayload,
    service: TaskServiceDep,
    t: TranslatorDep,
    project_id: int = Path(gt=0),
):
    """Create a new task under a project"""
    task = await service.create_task(
        TaskCreate(**task_data.model_dump(), project_id=project_id)
    )
    return t.respond(task, "taskCreated", status.HTTP_201_CREATED)


@router.get(
    "/projects/{project_id}/tasks",
    response_model=ApiResponse[list[TaskReadWithProject]],
)
async def get_project_tasks(project_id: int, service: TaskServiceDep, t: TranslatorDep):
    return t.respond(await service.get_tasks_by_project(project_id), "tasks")


@router.get("/tasks", response_model=ApiResponse[TaskList])
async def get_tasks(
    service: TaskServiceDep,
    t: TranslatorDep,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    task_status: TaskStatus | None = Query(default=None, alias="status"),
    priority: TaskPriority | None = None,
    project_id: int | None = Query(default=None, ge=1),
):
    filters = TaskFilters(
        page=page,
        limit=limit,
        status=task_status,
        priority=priority,
        project_id=project_id,
    )
    return t.respond(await service.get_all_tasks(filters), "tasks")


@router.get("/tasks/{task_id}", response_model=ApiResponse[TaskReadWithProject])
async def get_task(task_id: int, service: TaskServiceDep, t: TranslatorDep):
    """Get a specific task by ID"""
    return t.respond(await service.get_task_by_id(task_id), "task")


@router.put("/tasks/{task_id}", response_model=ApiResponse[TaskRead])
async def update_task(
    task_id: int, task_data: TaskUpdate, service: TaskServiceDep, t: TranslatorDep
):
    task = await service.update_task(task_id, task_data)
    return t.respond(task, "taskUpdated")


@router.delete("/tasks/{task_id}", response_model=ApiResponse[None])
async def delete_task(task_id: int, service: TaskServiceDep, t: TranslatorDep):
    """Delete a task"""
    await service.delete_task(task_id)
    return t.respond(None, "taskDeleted")
