from datetime import datetime

import pytest

from app.cache import keys
from app.core.errors import NotFoundError
from app.models import (
    ProjectCreate,
    Task,
    TaskCreate,
    TaskFilters,
    TaskPriority,
    TaskReadWithProject,
    TaskStatus,
    TaskUpdate,
)


@pytest.mark.asyncio
async def test_create_task_defaults(task_service, make_project):
    project = await make_project("P")
    task = await task_service.create_task(TaskCreate(title="Write docs", project_id=project.id))

    assert task.id is not None
    assert task.status == TaskStatus.PENDING
    assert task.priority == TaskPriority.MEDIUM
    assert task.description is None
    assert task.due_date is None
    assert task.project_id == project.id


@pytest.mark.asyncio
async def test_create_task_requires_existing_project(task_service, db):
    with pytest.raises(NotFoundError) as exc_info:
        await task_service.create_task(TaskCreate(title="Orphan", project_id=404))

    assert exc_info.value.entity == "project"
    assert exc_info.value.entity_id == 404
    assert await task_service.tasks.count() == 0


@pytest.mark.asyncio
async def test_create_task_invalidates_parent_views(task_service, project_service, make_project, cache):
    project = await make_project("P")
    other = await make_project("Q")
    assert await task_service.get_tasks_by_project(project.id) == []
    await task_service.get_tasks_by_project(other.id)
    await project_service.get_project_by_id(project.id)

    await task_service.create_task(TaskCreate(title="New", project_id=project.id))

    assert await cache.exists(keys.project_tasks_key(project.id)) is False
    assert await cache.exists(keys.project_key(project.id)) is False
    assert await cache.exists(keys.project_tasks_key(other.id)) is True
    assert [t.title for t in await task_service.get_tasks_by_project(project.id)] == ["New"]
    assert [t.title for t in (await project_service.get_project_by_id(project.id)).tasks] == ["New"]


@pytest.mark.asyncio
async def test_get_task_includes_project_summary(task_service, make_project, make_task, cache, redis_client):
    project = await make_project("Owner")
    task = await make_task(project.id, "Ship it", priority=TaskPriority.URGENT)

    fresh = await task_service.get_task_by_id(task.id)
    assert isinstance(fresh, TaskReadWithProject)
    assert fresh.project.id == project.id
    assert fresh.project.name == "Owner"
    assert fresh.priority == TaskPriority.URGENT
    assert await cache.exists(keys.task_key(task.id)) is True

    cached = await task_service.get_task_by_id(task.id)
    assert cached == fresh

    await redis_client.flushall()
    assert await task_service.get_task_by_id(task.id) == fresh


@pytest.mark.asyncio
async def test_missing_task_is_not_cached(task_service, redis_client):
    with pytest.raises(NotFoundError) as exc_info:
        await task_service.get_task_by_id(404)
    assert exc_info.value.entity == "task"
    assert await redis_client.keys("*") == []


@pytest.mark.asyncio
async def test_tasks_by_project_newest_first_and_cached(task_service, make_project, make_task, cache):
    project = await make_project("P")
    await make_task(project.id, "old", offset_minutes=1)
    await make_task(project.id, "new", offset_minutes=5)
    await make_task(project.id, "mid", offset_minutes=3)

    tasks = await task_service.get_tasks_by_project(project.id)

    assert [t.title for t in tasks] == ["new", "mid", "old"]
    assert all(t.project.name == "P" for t in tasks)
    assert await cache.exists(keys.project_tasks_key(project.id)) is True
    assert await task_service.get_tasks_by_project(project.id) == tasks


@pytest.mark.asyncio
async def test_tasks_by_missing_project(task_service, redis_client):
    with pytest.raises(NotFoundError):
        await task_service.get_tasks_by_project(404)
    assert await redis_client.keys("*") == []


@pytest.mark.asyncio
async def test_moving_a_task_invalidates_both_projects(task_service, make_project, cache):
    p = await make_project("P")
    q = await make_project("Q")
    task = await task_service.create_task(TaskCreate(title="Mover", project_id=p.id))

    assert [t.id for t in await task_service.get_tasks_by_project(p.id)] == [task.id]
    assert await task_service.get_tasks_by_project(q.id) == []
    await task_service.get_task_by_id(task.id)
    assert await cache.exists(keys.project_tasks_key(p.id)) is True
    assert await cache.exists(keys.project_tasks_key(q.id)) is True

    moved = await task_service.update_task(task.id, TaskUpdate(project_id=q.id))

    assert moved.project_id == q.id
    assert await cache.exists(keys.project_tasks_key(p.id)) is False
    assert await cache.exists(keys.project_tasks_key(q.id)) is False
    assert await cache.exists(keys.task_key(task.id)) is False

    assert await task_service.get_tasks_by_project(p.id) == []
    assert [t.id for t in await task_service.get_tasks_by_project(q.id)] == [task.id]
    assert (await task_service.get_task_by_id(task.id)).project.name == "Q"


@pytest.mark.asyncio
async def test_move_to_missing_project_changes_nothing(task_service, make_project, make_task, cache, db):
    p = await make_project("P")
    task = await make_task(p.id, "Stay")
    await task_service.get_tasks_by_project(p.id)
    await task_service.get_task_by_id(task.id)

    with pytest.raises(NotFoundError) as exc_info:
        await task_service.update_task(task.id, TaskUpdate(title="Renamed", project_id=404))

    assert exc_info.value.entity == "project"
    assert exc_info.value.entity_id == 404
    assert exc_info.value.detail == "target project"
    row = await db.get(Task, task.id)
    assert row.project_id == p.id
    assert row.title == "Stay"
    assert await cache.exists(keys.project_tasks_key(p.id)) is True
    assert await cache.exists(keys.task_key(task.id)) is True


@pytest.mark.asyncio
async def test_update_in_place_leaves_other_projects_cached(task_service, make_project, make_task, cache):
    p = await make_project("P")
    q = await make_project("Q")
    task = await make_task(p.id, "Draft")
    await task_service.get_tasks_by_project(p.id)
    await task_service.get_tasks_by_project(q.id)
    await task_service.get_task_by_id(task.id)

    updated = await task_service.update_task(
        task.id,
        TaskUpdate(
            status=TaskStatus.IN_PROGRESS,
            due_date=datetime(2024, 6, 1, 12, 0),
            project_id=p.id,
        ),
    )

    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.due_date == datetime(2024, 6, 1, 12, 0)
    assert await cache.exists(keys.task_key(task.id)) is False
    assert await cache.exists(keys.project_tasks_key(p.id)) is False
    assert await cache.exists(keys.project_tasks_key(q.id)) is True

    refreshed = await task_service.get_task_by_id(task.id)
    assert refreshed.status == TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_update_nulls(task_service, make_project, make_task):
    p = await make_project("P")
    task = await make_task(p.id, "Keep", description="remove me")

    updated = await task_service.update_task(
        task.id, TaskUpdate(title=None, description=None)
    )

    assert updated.title == "Keep"
    assert updated.description is None


@pytest.mark.asyncio
async def test_update_missing_task(task_service):
    with pytest.raises(NotFoundError) as exc_info:
        await task_service.update_task(404, TaskUpdate(title="x"))
    assert exc_info.value.entity == "task"


@pytest.mark.asyncio
async def test_delete_task_invalidates(task_service, make_project, make_task, cache, redis_client):
    p = await make_project("P")
    task = await make_task(p.id, "Done")
    await task_service.get_task_by_id(task.id)
    await task_service.get_tasks_by_project(p.id)

    assert await task_service.delete_task(task.id) is True

    assert await redis_client.keys("*") == []
    assert await task_service.get_tasks_by_project(p.id) == []
    with pytest.raises(NotFoundError):
        await task_service.get_task_by_id(task.id)


@pytest.mark.asyncio
async def test_delete_missing_task(task_service):
    with pytest.raises(NotFoundError):
        await task_service.delete_task(404)


@pytest.mark.asyncio
async def test_project_delete_allowed_after_tasks_removed(task_service, project_service, make_project, make_task):
    p = await make_project("P")
    task = await make_task(p.id)
    await task_service.delete_task(task.id)

    assert await project_service.delete_project(p.id) is True


@pytest.mark.asyncio
async def test_get_all_tasks_filters_and_pages(task_service, make_project, make_task, redis_client):
    p = await make_project("P")
    q = await make_project("Q")
    for i in range(12):
        await make_task(p.id, f"p{i}", offset_minutes=i, priority=TaskPriority.HIGH)
    await make_task(q.id, "q-done", offset_minutes=100, status=TaskStatus.COMPLETED)

    page = await task_service.get_all_tasks(TaskFilters(page=2, limit=5, project_id=p.id))
    assert [t.title for t in page.tasks] == ["p6", "p5", "p4", "p3", "p2"]
    assert page.pagination.total == 12
    assert page.pagination.total_pages == 3
    assert page.tasks[0].project.name == "P"

    done = await task_service.get_all_tasks(TaskFilters(status=TaskStatus.COMPLETED))
    assert [t.title for t in done.tasks] == ["q-done"]

    high = await task_service.get_all_tasks(TaskFilters(priority=TaskPriority.HIGH))
    assert high.pagination.total == 12

    everything = await task_service.get_all_tasks(TaskFilters())
    assert everything.tasks[0].title == "q-done"
    assert everything.pagination.total == 13

    # This listing always goes to the store
    assert await redis_client.keys("*") == []


@pytest.mark.asyncio
@pytest.mark.parametrize("cache_state", ["up", "down"])
async def test_outcomes_do_not_depend_on_cache(cache_state, services_for, cache, down_cache):
    projects, tasks = services_for(cache if cache_state == "up" else down_cache)

    p = await projects.create_project(ProjectCreate(name="P", description="d"))
    q = await projects.create_project(ProjectCreate(name="Q", description="d"))

    task = await tasks.create_task(TaskCreate(title="T", project_id=p.id))
    assert [t.id for t in await tasks.get_tasks_by_project(p.id)] == [task.id]
    assert (await tasks.get_task_by_id(task.id)).project.id == p.id

    await tasks.update_task(task.id, TaskUpdate(project_id=q.id, title="T2"))
    assert await tasks.get_tasks_by_project(p.id) == []
    assert [t.title for t in await tasks.get_tasks_by_project(q.id)] == ["T2"]
    assert (await tasks.get_task_by_id(task.id)).project.id == q.id
    assert [t.title for t in (await projects.get_project_by_id(q.id)).tasks] == ["T2"]

    assert await tasks.delete_task(task.id) is True
    assert await tasks.get_tasks_by_project(q.id) == []
    with pytest.raises(NotFoundError):
        await tasks.get_task_by_id(task.id)
