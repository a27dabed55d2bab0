"""
Pydantic schemas for request/response validation
"""
from taskflow.schemas.user import UserCreate, UserResponse, UserStatsResponse, UserUpdate
from taskflow.schemas.auth import AuthCheckResponse, LoginRequest, LoginResponse
from taskflow.schemas.project import ProjectCreate, ProjectResponse, ProjectUpdate
from taskflow.schemas.task import TaskCreate, TaskCreated, TaskResponse, TaskStatusUpdate, TaskUpdate
from taskflow.schemas.notification import NotificationResponse, UnreadCountResponse

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserStatsResponse",
    "UserUpdate",
    "AuthCheckResponse",
    "LoginRequest",
    "LoginResponse",
    "ProjectCreate",
    "ProjectResponse",
    "ProjectUpdate",
    "TaskCreate",
    "TaskCreated",
    "TaskResponse",
    "TaskStatusUpdate",
    "TaskUpdate",
    "NotificationResponse",
    "UnreadCountResponse",
]
