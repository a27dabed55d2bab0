"""Service layer: authentication, access policy, task lifecycle and notifications."""
from taskflow.services.auth import Authenticator, ClientMeta, LoginResult, require_role
from taskflow.services.mailer import EmailNotifier, Notifier
from taskflow.services.notifications import NotificationLedger
from taskflow.services.policy import Identity, Operation, decide
from taskflow.services.projects import ProjectService
from taskflow.services.tasks import TaskEngine, TaskFilters
from taskflow.services.users import UserService

__all__ = [
    "Authenticator",
    "ClientMeta",
    "LoginResult",
    "require_role",
    "EmailNotifier",
    "Notifier",
    "NotificationLedger",
    "Identity",
    "Operation",
    "decide",
    "ProjectService",
    "TaskEngine",
    "TaskFilters",
    "UserService",
]
