"""Email delivery for task notifications.

The task engine talks to this module only through the ``Notifier`` protocol;
both hooks report success as a bool and never raise.
"""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from taskflow.config import Settings, settings as default_settings
from taskflow.models import Task, User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify_assignment(self, task_id: int, assignee_id: int, acting_user_id: int) -> bool: ...

    def notify_status_change(self, task_id: int, assignee_id: int, new_status: str) -> bool: ...


def _full_name(user: Optional[User]) -> str:
    if user is None:
        return "Unknown"
    name = f"{user.first_name} {user.last_name}".strip()
    return name or user.username


def _status_label(value) -> str:
    return str(getattr(value, "value", value)).replace("_", " ").title()


class EmailNotifier:
    def __init__(self, db: Session, settings: Settings = default_settings):
        self.db = db
        self.settings = settings

    def notify_assignment(self, task_id: int, assignee_id: int, acting_user_id: int) -> bool:
        try:
            task = self.db.get(Task, task_id)
            assignee = self.db.get(User, assignee_id)
            if task is None or assignee is None:
                logger.warning("Assignment email skipped: task %s or user %s missing", task_id, assignee_id)
                return False
            acting_user = self.db.get(User, acting_user_id)

            due = task.due_date.strftime("%b %d, %Y") if task.due_date else "No deadline"
            if task.due_time:
                due = f"{due} {task.due_time.strftime('%H:%M')}"
            body = "\n".join(
                [
                    f"Hello {_full_name(assignee)},",
                    "",
                    f"{_full_name(acting_user)} assigned you a new task.",
                    "",
                    f"Title: {task.title}",
                    f"Priority: {_status_label(task.priority)}",
                    f"Due: {due}",
                    f"Project: {task.project.name if task.project else 'No project'}",
                    "",
                    task.description or "",
                ]
            )
            return self._send(assignee.email, f"New Task Assigned: {task.title}", body)
        except Exception:
            logger.exception("Assignment email for task %s failed", task_id)
            return False

    def notify_status_change(self, task_id: int, assignee_id: int, new_status: str) -> bool:
        try:
            task = self.db.get(Task, task_id)
            assignee = self.db.get(User, assignee_id)
            if task is None or assignee is None:
                logger.warning("Status email skipped: task %s or user %s missing", task_id, assignee_id)
                return False
            body = "\n".join(
                [
                    f"Hello {_full_name(assignee)},",
                    "",
                    f"The task '{task.title}' is now {_status_label(new_status)}.",
                ]
            )
            return self._send(assignee.email, f"Task Updated: {task.title}", body)
        except Exception:
            logger.exception("Status email for task %s failed", task_id)
            return False

    def _send(self, to_address: str, subject: str, body: str) -> bool:
        message = EmailMessage()
        message["From"] = f"{self.settings.SMTP_FROM_NAME} <{self.settings.SMTP_FROM_EMAIL}>"
        message["To"] = to_address
        message["Reply-To"] = self.settings.SMTP_FROM_EMAIL
        message["Subject"] = subject
        message.set_content(body)

        if not self.settings.SMTP_ENABLED:
            logger.info("SMTP disabled; email to %s not sent: %s", to_address, subject)
            return True

        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=10) as smtp:
            smtp.starttls()
            if self.settings.SMTP_USER:
                smtp.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
            smtp.send_message(message)
        logger.info("Email sent to %s: %s", to_address, subject)
        return True
