"""Role and ownership rules.

``decide`` is the only place that knows which operations a regular user may
perform. Reads come back as ``AllowedWithFilter`` carrying a SQL predicate so
callers restrict the query itself instead of filtering rows afterwards.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Query

from taskflow.errors import Forbidden as ForbiddenError
from taskflow.models import Task, UserRole


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, threaded explicitly through every service call."""

    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Operation(str, enum.Enum):
    TASK_LIST = "task_list"
    TASK_LIST_BY_ASSIGNEE = "task_list_by_assignee"
    TASK_READ = "task_read"
    TASK_CREATE = "task_create"
    TASK_UPDATE = "task_update"
    TASK_STATUS_UPDATE = "task_status_update"
    TASK_DELETE = "task_delete"
    USER_LIST = "user_list"
    USER_READ = "user_read"
    USER_CREATE = "user_create"
    USER_UPDATE = "user_update"
    USER_ADMIN_UPDATE = "user_admin_update"
    USER_DELETE = "user_delete"
    PROJECT_WRITE = "project_write"


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class AllowedWithFilter:
    predicate: Any


@dataclass(frozen=True)
class Forbidden:
    reason: str = "Access denied"


Decision = Union[Allowed, AllowedWithFilter, Forbidden]

_OWNER_SCOPED_READS = {Operation.TASK_LIST, Operation.TASK_READ}
_SELF_SCOPED = {Operation.USER_READ, Operation.USER_UPDATE}


def ownership_filter(user_id: int):
    return or_(Task.assigned_to == user_id, Task.created_by == user_id)


def decide(
    identity: Identity,
    operation: Operation,
    target_owner_ids: Optional[Iterable[int]] = None,
) -> Decision:
    if identity.is_admin:
        return Allowed()

    if operation in _OWNER_SCOPED_READS:
        return AllowedWithFilter(ownership_filter(identity.user_id))

    if operation == Operation.TASK_STATUS_UPDATE:
        if target_owner_ids is not None and identity.user_id in set(target_owner_ids):
            return Allowed()
        return Forbidden("Only the assignee or creator can change this task")

    if operation in _SELF_SCOPED:
        if target_owner_ids is not None and set(target_owner_ids) == {identity.user_id}:
            return Allowed()
        return Forbidden()

    return Forbidden("Admin access required")


def require(decision: Decision) -> Decision:
    if isinstance(decision, Forbidden):
        raise ForbiddenError(decision.reason)
    return decision


def scope_query(identity: Identity, operation: Operation, query: Query) -> Query:
    decision = require(decide(identity, operation))
    if isinstance(decision, AllowedWithFilter):
        query = query.filter(decision.predicate)
    return query


def is_status_only(payload: Mapping[str, Any], id_key: str = "task_id") -> bool:
    """True when the payload carries the status and nothing but the task identifier."""
    return set(payload) - {id_key} == {"status"}
