"""Domain errors raised by the service layer.

Every error carries the HTTP status it is rendered with; ``taskflow.main``
installs a single handler that turns them into ``{"detail": ...}`` responses.
"""
from fastapi import status


class TaskFlowError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(TaskFlowError):
    """A required field is missing or malformed."""

    default_detail = "Invalid request"


class InvalidReference(TaskFlowError):
    """An assignee or project does not exist, or the assignee is inactive."""

    default_detail = "Referenced record does not exist"


class AuthError(TaskFlowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication failed"


class InvalidCredentials(AuthError):
    default_detail = "Invalid username or password"


class Unauthenticated(AuthError):
    default_detail = "Authentication required"


class Forbidden(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotFoundOrForbidden(AuthError):
    """A row that is missing or outside the caller's scope; the two are not told apart."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Task not found"


class NotFound(TaskFlowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class ConflictError(TaskFlowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"
