"""TaskFlow Database Models"""
from taskflow.models.user import User, UserRole, UserStatus
from taskflow.models.session import UserSession
from taskflow.models.project import Project
from taskflow.models.task import Task, TaskPriority, TaskStatus
from taskflow.models.notification import Notification, NotificationType

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
    "UserSession",
    "Project",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "Notification",
    "NotificationType",
]
