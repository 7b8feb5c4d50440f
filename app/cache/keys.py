"""
Cache key derivation.

Keys are colon-delimited so every filtered project listing lives under the
``projects:list`` prefix and can be dropped with one pattern delete.
"""

import json
from typing import Any, Iterable, Mapping, NamedTuple

PROJECT_LIST_PREFIX = "projects:list"
PROJECT_LIST_PATTERN = f"{PROJECT_LIST_PREFIX}*"


class InvalidationScope(NamedTuple):
    keys: tuple[str, ...]
    patterns: tuple[str, ...] = ()


def project_key(project_id: int) -> str:
    return f"project:{project_id}"


def project_list_key(filters: Mapping[str, Any] | None = None) -> str:
    params = {k: v for k, v in (filters or {}).items() if v is not None}
    if not params:
        return PROJECT_LIST_PREFIX
    encoded = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    return f"{PROJECT_LIST_PREFIX}:{encoded}"


def task_key(task_id: int) -> str:
    return f"task:{task_id}"


def project_tasks_key(project_id: int) -> str:
    return f"project:{project_id}:tasks"


def project_scope(project_id: int, task_ids: Iterable[int] = ()) -> InvalidationScope:
    """
    Keys touched by any write to a project row.

    Each cached task embeds its project summary, so the project's own tasks
    go as well.
    """
    return InvalidationScope(
        keys=(
            project_key(project_id),
            project_tasks_key(project_id),
            *(task_key(task_id) for task_id in task_ids),
        ),
        patterns=(PROJECT_LIST_PATTERN,),
    )


def task_scope(task_id: int | None, project_id: int) -> InvalidationScope:
    """
    Keys touched by a task write under ``project_id``.

    The project detail embeds its tasks, so it goes together with the
    project's task list.
    """
    keys = [project_tasks_key(project_id), project_key(project_id)]
    if task_id is not None:
        keys.insert(0, task_key(task_id))
    return InvalidationScope(keys=tuple(keys))
