"""Task endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from taskflow.dependencies import get_current_identity, get_task_engine
from taskflow.models import Task
from taskflow.schemas import TaskCreate, TaskCreated, TaskResponse, TaskStatusUpdate, TaskUpdate
from taskflow.services import Identity, TaskEngine, TaskFilters

router = APIRouter()


def _serialize_task(task: Task) -> TaskResponse:
    project = task.project
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        due_date=task.due_date,
        due_time=task.due_time,
        project_id=task.project_id,
        project_name=project.name if project else None,
        project_color=project.color if project else None,
        assigned_to=task.assigned_to,
        assigned_to_username=task.assignee.username if task.assignee else None,
        created_by=task.created_by,
        created_by_username=task.creator.username if task.creator else None,
        tags=task.tags or [],
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    project_id: Optional[int] = Query(None),
    assigned_to: Optional[int] = Query(None, description="Admin only"),
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    """List the tasks visible to the caller, newest first."""
    filters = TaskFilters(
        status=status_filter,
        priority=priority,
        project_id=project_id,
        assigned_to=assigned_to,
    )
    return [_serialize_task(task) for task in engine.list(identity, filters)]


@router.post("", response_model=TaskCreated, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    task_id = engine.create(identity, task_in.model_dump(exclude_unset=True))
    return TaskCreated(task_id=task_id)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    return _serialize_task(engine.get(identity, task_id))


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    task_update: TaskUpdate,
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    """Update a task.

    A body of ``{"task_id", "status"}`` is a status change open to the
    assignee and creator; any other field makes it an admin-only update.
    """
    engine.update(identity, task_id, task_update.model_dump(exclude_unset=True))
    return _serialize_task(engine.get(identity, task_id))


@router.patch("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    task_id: int,
    status_update: TaskStatusUpdate,
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    engine.update(identity, task_id, {"task_id": task_id, "status": status_update.status})
    return _serialize_task(engine.get(identity, task_id))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    identity: Identity = Depends(get_current_identity),
    engine: TaskEngine = Depends(get_task_engine),
):
    engine.delete(identity, task_id)
