"""User administration."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from taskflow.database import utcnow
from taskflow.errors import ConflictError, NotFound, ValidationError
from taskflow.models import Task, TaskStatus, User, UserRole, UserStatus
from taskflow.security import hash_password
from taskflow.services.auth import Authenticator
from taskflow.services.policy import Identity, Operation, decide, require

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("username", "email", "password", "first_name", "last_name")
PROFILE_FIELDS = {"username", "email", "password", "first_name", "last_name"}
ADMIN_FIELDS = {"role", "status"}


@dataclass
class UserStats:
    user: User
    total_tasks: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0


def _check_email(value: str) -> str:
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError:
        raise ValidationError("Invalid email format") from None


def _parse_role(value: Any) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise ValidationError("Invalid role") from None


def _parse_user_status(value: Any) -> UserStatus:
    try:
        return UserStatus(value)
    except ValueError:
        raise ValidationError("Invalid status") from None


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def list_users(self, caller: Identity) -> List[UserStats]:
        require(decide(caller, Operation.USER_LIST))
        rows = self._stats_query().order_by(User.created_at.desc(), User.id.desc()).all()
        return [self._to_stats(row) for row in rows]

    def get_user(self, caller: Identity, user_id: int) -> UserStats:
        require(decide(caller, Operation.USER_READ, {user_id}))
        row = self._stats_query().filter(User.id == user_id).first()
        if row is None:
            raise NotFound("User not found")
        return self._to_stats(row)

    def create_user(self, caller: Identity, fields: Mapping[str, Any]) -> User:
        require(decide(caller, Operation.USER_CREATE))
        for field in REQUIRED_FIELDS:
            if not str(fields.get(field) or "").strip():
                raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required")

        username = fields["username"].strip()
        email = _check_email(fields["email"].strip())
        self._ensure_unique(username=username, email=email)

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(fields["password"]),
            first_name=fields["first_name"].strip(),
            last_name=fields["last_name"].strip(),
            role=_parse_role(fields.get("role") or UserRole.USER),
            status=_parse_user_status(fields.get("status") or UserStatus.ACTIVE),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s created by user %s", user.id, caller.user_id)
        return user

    def update_user(self, caller: Identity, user_id: int, fields: Mapping[str, Any]) -> User:
        require(decide(caller, Operation.USER_UPDATE, {user_id}))
        changes: Dict[str, Any] = {key: value for key, value in fields.items() if value not in (None, "")}
        unknown = set(changes) - PROFILE_FIELDS - ADMIN_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        if ADMIN_FIELDS & set(changes):
            require(decide(caller, Operation.USER_ADMIN_UPDATE))
        if not changes:
            raise ValidationError("No fields to update")

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        if user.id == caller.user_id and (
            ("role" in changes and _parse_role(changes["role"]) != user.role)
            or ("status" in changes and _parse_user_status(changes["status"]) != user.status)
        ):
            raise ValidationError("Cannot change your own role or status")

        try:
            if "username" in changes:
                username = changes["username"].strip()
                self._ensure_unique(username=username, exclude_id=user.id)
                user.username = username
            if "email" in changes:
                email = _check_email(changes["email"].strip())
                self._ensure_unique(email=email, exclude_id=user.id)
                user.email = email
            if "first_name" in changes:
                user.first_name = changes["first_name"].strip()
            if "last_name" in changes:
                user.last_name = changes["last_name"].strip()
            if "password" in changes:
                user.password_hash = hash_password(changes["password"])
            if "role" in changes:
                user.role = _parse_role(changes["role"])
            if "status" in changes:
                user.status = _parse_user_status(changes["status"])
                if user.status == UserStatus.INACTIVE:
                    revoked = Authenticator(self.db).revoke_user_sessions(user.id)
                    logger.info("Revoked %s sessions of deactivated user %s", revoked, user.id)
            user.updated_at = utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(user)
        logger.info("User %s updated by user %s", user.id, caller.user_id)
        return user

    def delete_user(self, caller: Identity, user_id: int) -> None:
        require(decide(caller, Operation.USER_DELETE))
        if user_id == caller.user_id:
            raise ValidationError("Cannot delete your own account")

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        task_count = (
            self.db.query(func.count(Task.id))
            .filter(or_(Task.assigned_to == user_id, Task.created_by == user_id))
            .scalar()
        )
        if task_count:
            raise ConflictError("Cannot delete user with assigned tasks. Please reassign tasks first.")

        self.db.delete(user)
        self.db.commit()
        logger.info("User %s deleted by user %s", user_id, caller.user_id)

    def _ensure_unique(self, username: str = None, email: str = None, exclude_id: int = None) -> None:
        if username is not None:
            query = self.db.query(User.id).filter(User.username == username)
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("Username already exists")
        if email is not None:
            query = self.db.query(User.id).filter(func.lower(User.email) == email.lower())
            if exclude_id is not None:
                query = query.filter(User.id != exclude_id)
            if query.first():
                raise ConflictError("Email already exists")

    def _stats_query(self):
        def count_status(task_status: TaskStatus):
            return func.count(func.distinct(case((Task.status == task_status, Task.id))))

        return (
            self.db.query(
                User,
                func.count(func.distinct(Task.id)),
                count_status(TaskStatus.PENDING),
                count_status(TaskStatus.IN_PROGRESS),
                count_status(TaskStatus.COMPLETED),
            )
            .outerjoin(Task, Task.assigned_to == User.id)
            .group_by(User.id)
        )

    @staticmethod
    def _to_stats(row) -> UserStats:
        user, total, pending, in_progress, completed = row
        return UserStats(
            user=user,
            total_tasks=total,
            pending_tasks=pending,
            in_progress_tasks=in_progress,
            completed_tasks=completed,
        )
