"""Schemas for tasks"""
from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from taskflow.models import TaskPriority, TaskStatus


def _split_tags(value):
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    return value


class TaskCreate(BaseModel):
    title: str
    description: Optional[str] = None
    # Free text on purpose: unknown priorities are stored as "medium", not rejected.
    priority: Optional[str] = None
    due_date: Optional[date] = None
    due_time: Optional[time] = None
    project_id: Optional[int] = None
    assigned_to: int
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return _split_tags(value)


class TaskUpdate(BaseModel):
    task_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    due_date: Optional[date] = None
    due_time: Optional[time] = None
    project_id: Optional[int] = None
    assigned_to: Optional[int] = None
    tags: Optional[List[str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, value):
        return _split_tags(value)


class TaskStatusUpdate(BaseModel):
    status: str


class TaskCreated(BaseModel):
    task_id: int


class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[date]
    due_time: Optional[time]
    project_id: Optional[int]
    project_name: Optional[str]
    project_color: Optional[str]
    assigned_to: int
    assigned_to_username: Optional[str]
    created_by: int
    created_by_username: Optional[str]
    tags: List[str]
    created_at: datetime
    updated_at: datetime
