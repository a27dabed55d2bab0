"""Task lifecycle: creation, updates, reassignment, status transitions.

Every mutation runs its read-validate-write sequence inside one transaction
and only then hands ledger entries to the notifier. Delivery results are
logged and recorded on the ledger row; they never change the outcome of the
mutation that produced them.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from taskflow.database import utcnow
from taskflow.errors import InvalidReference, NotFound, NotFoundOrForbidden, ValidationError
from taskflow.models import NotificationType, Project, Task, TaskPriority, TaskStatus, User, UserStatus
from taskflow.services.mailer import Notifier
from taskflow.services.notifications import NotificationLedger
from taskflow.services.policy import Identity, Operation, decide, is_status_only, require, scope_query

logger = logging.getLogger(__name__)

TASK_ID_KEY = "task_id"
UPDATABLE_FIELDS = {
    "title",
    "description",
    "priority",
    "status",
    "due_date",
    "due_time",
    "project_id",
    "assigned_to",
    "tags",
}

Delivery = Tuple[int, Callable[[], bool]]


@dataclass
class TaskFilters:
    status: Optional[str] = None
    priority: Optional[str] = None
    project_id: Optional[int] = None
    assigned_to: Optional[int] = None


def normalize_priority(value: Any) -> TaskPriority:
    """Unknown or missing priorities fall back to medium instead of failing."""
    if isinstance(value, TaskPriority):
        return value
    try:
        return TaskPriority(str(value).strip().lower())
    except ValueError:
        return TaskPriority.MEDIUM


def parse_status(value: Any) -> TaskStatus:
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError("Invalid status") from None


def parse_priority(value: Any) -> TaskPriority:
    """Strict variant used for list filters."""
    if isinstance(value, TaskPriority):
        return value
    try:
        return TaskPriority(str(value).strip().lower())
    except ValueError:
        raise ValidationError("Invalid priority") from None


def normalize_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


def _clean_title(value: Any) -> str:
    title = "" if value is None else str(value).strip()
    if not title:
        raise ValidationError("Task title is required")
    return title


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def _as_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid due date") from None


def _as_time(value: Any) -> Optional[time]:
    if value in (None, ""):
        return None
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid due time") from None


def _as_id(value: Any, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}") from None


def _label(value: Any) -> str:
    return str(getattr(value, "value", value)).replace("_", " ")


class TaskEngine:
    def __init__(
        self,
        db: Session,
        notifier: Notifier,
        ledger: Optional[NotificationLedger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.ledger = ledger or NotificationLedger(db)
        self.clock = clock

    # ------------------------------------------------------------------ reads

    def list(self, caller: Identity, filters: Optional[TaskFilters] = None) -> List[Task]:
        filters = filters or TaskFilters()
        query = scope_query(caller, Operation.TASK_LIST, self._task_query())

        if filters.status is not None:
            query = query.filter(Task.status == parse_status(filters.status))
        if filters.priority is not None:
            query = query.filter(Task.priority == parse_priority(filters.priority))
        if filters.project_id is not None:
            query = query.filter(Task.project_id == filters.project_id)
        if filters.assigned_to is not None:
            require(decide(caller, Operation.TASK_LIST_BY_ASSIGNEE))
            query = query.filter(Task.assigned_to == filters.assigned_to)

        return query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    def get(self, caller: Identity, task_id: int) -> Task:
        task = (
            scope_query(caller, Operation.TASK_READ, self._task_query())
            .filter(Task.id == task_id)
            .first()
        )
        if task is None:
            raise self._missing(caller)
        return task

    # -------------------------------------------------------------- mutations

    def create(self, caller: Identity, fields: Mapping[str, Any]) -> int:
        require(decide(caller, Operation.TASK_CREATE))
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        with self._transaction():
            title = _clean_title(fields.get("title"))
            assignee = self._active_assignee(fields.get("assigned_to"))
            now = self.clock()
            task = Task(
                title=title,
                description=_clean_text(fields.get("description")),
                priority=normalize_priority(fields.get("priority")),
                status=TaskStatus.PENDING,
                due_date=_as_date(fields.get("due_date")),
                due_time=_as_time(fields.get("due_time")),
                project_id=self._project_ref(fields.get("project_id")),
                assigned_to=assignee.id,
                created_by=caller.user_id,
                tags=normalize_tags(fields.get("tags")),
                created_at=now,
                updated_at=now,
            )
            self.db.add(task)
            self.db.flush()
            deliveries = [self._assignment_event(task, caller)]

        logger.info("Task %s created by user %s and assigned to user %s", task.id, caller.user_id, task.assigned_to)
        self._deliver(deliveries)
        return task.id

    def update(self, caller: Identity, task_id: int, payload: Mapping[str, Any]) -> Task:
        """Apply ``payload`` to a task.

        A payload made of ``status`` alone (plus an optional ``task_id``) takes
        the restricted path open to the task's assignee and creator. Anything
        else is a full update and needs an admin.
        """
        payload = dict(payload)
        if payload.get(TASK_ID_KEY) is not None and _as_id(payload[TASK_ID_KEY], "task ID") != task_id:
            raise ValidationError("Task ID does not match the request")

        with self._transaction():
            task = self._load_for_write(caller, task_id)
            owners = {task.assigned_to, task.created_by}
            if is_status_only(payload, TASK_ID_KEY):
                require(decide(caller, Operation.TASK_STATUS_UPDATE, owners))
                deliveries = self._apply_status(task, payload["status"])
            else:
                require(decide(caller, Operation.TASK_UPDATE, owners))
                deliveries = self._apply_fields(caller, task, payload)
            task.updated_at = self.clock()

        logger.info("Task %s updated by user %s", task.id, caller.user_id)
        self._deliver(deliveries)
        return task

    def delete(self, caller: Identity, task_id: int) -> None:
        require(decide(caller, Operation.TASK_DELETE))
        with self._transaction():
            task = self.db.get(Task, task_id)
            if task is None:
                raise NotFound("Task not found")
            self.db.delete(task)
        logger.info("Task %s deleted by user %s", task_id, caller.user_id)

    # ---------------------------------------------------------------- helpers

    def _apply_status(self, task: Task, value: Any) -> List[Delivery]:
        new_status = parse_status(value)
        task.status = new_status
        notification_id = self.ledger.append(
            task.id,
            task.assigned_to,
            NotificationType.TASK_UPDATED,
            f"Task '{task.title}' status changed to {_label(new_status)}",
        )
        send = partial(self.notifier.notify_status_change, task.id, task.assigned_to, new_status.value)
        return [(notification_id, send)]

    def _apply_fields(self, caller: Identity, task: Task, payload: Dict[str, Any]) -> List[Delivery]:
        fields = {key: value for key, value in payload.items() if key != TASK_ID_KEY}
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if not fields:
            raise ValidationError("No fields to update")

        if "title" in fields:
            task.title = _clean_title(fields["title"])
        if "description" in fields:
            task.description = _clean_text(fields["description"])
        if "priority" in fields:
            task.priority = normalize_priority(fields["priority"])
        if "status" in fields:
            task.status = parse_status(fields["status"])
        if "due_date" in fields:
            task.due_date = _as_date(fields["due_date"])
        if "due_time" in fields:
            task.due_time = _as_time(fields["due_time"])
        if "tags" in fields:
            task.tags = normalize_tags(fields["tags"])
        if "project_id" in fields:
            task.project_id = self._project_ref(fields["project_id"])

        deliveries: List[Delivery] = []
        if "assigned_to" in fields and fields["assigned_to"] != task.assigned_to:
            assignee = self._active_assignee(fields["assigned_to"])
            if assignee.id != task.assigned_to:
                task.assigned_to = assignee.id
                deliveries.append(self._assignment_event(task, caller))
        return deliveries

    def _assignment_event(self, task: Task, caller: Identity) -> Delivery:
        notification_id = self.ledger.append(
            task.id,
            task.assigned_to,
            NotificationType.TASK_ASSIGNED,
            f"You have been assigned a new task: {task.title}",
        )
        send = partial(self.notifier.notify_assignment, task.id, task.assigned_to, caller.user_id)
        return notification_id, send

    def _active_assignee(self, user_id: Any) -> User:
        if user_id in (None, ""):
            raise ValidationError("Assigned user is required")
        # Row lock keeps a concurrent deactivation from slipping past this check.
        user = self.db.query(User).filter(User.id == _as_id(user_id, "assigned user")).with_for_update().first()
        if user is None:
            raise InvalidReference("Assigned user does not exist")
        if user.status != UserStatus.ACTIVE:
            raise InvalidReference("Assigned user is not active")
        return user

    def _project_ref(self, project_id: Any) -> Optional[int]:
        if project_id in (None, "", 0):
            return None
        project = self.db.query(Project.id).filter(Project.id == _as_id(project_id, "project")).first()
        if project is None:
            raise InvalidReference("Project does not exist")
        return project.id

    def _load_for_write(self, caller: Identity, task_id: int) -> Task:
        task = (
            scope_query(caller, Operation.TASK_READ, self.db.query(Task))
            .filter(Task.id == task_id)
            .with_for_update()
            .first()
        )
        if task is None:
            raise self._missing(caller)
        return task

    def _task_query(self):
        return self.db.query(Task).options(
            selectinload(Task.project),
            selectinload(Task.assignee),
            selectinload(Task.creator),
        )

    @staticmethod
    def _missing(caller: Identity) -> Exception:
        if caller.is_admin:
            return NotFound("Task not found")
        return NotFoundOrForbidden()

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _deliver(self, deliveries: Iterable[Delivery]) -> None:
        for notification_id, send in deliveries:
            try:
                delivered = send()
            except Exception:
                logger.exception("Notifier raised for notification %s", notification_id)
                delivered = False
            if delivered:
                logger.info("Notification %s delivered", notification_id)
            else:
                logger.warning("Notification %s could not be delivered", notification_id)
            self.ledger.record_delivery(notification_id, attempted=True)
