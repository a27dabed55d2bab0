from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.database import get_db
from taskflow.services import (
    Authenticator,
    EmailNotifier,
    Identity,
    NotificationLedger,
    Notifier,
    ProjectService,
    TaskEngine,
    UserService,
)


def get_session_token(request: Request) -> Optional[str]:
    """Session token from the ``Authorization: Bearer`` header, else the session cookie."""
    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_authenticator(db: Session = Depends(get_db)) -> Authenticator:
    return Authenticator(db)


def get_current_identity(
    token: Optional[str] = Depends(get_session_token),
    authenticator: Authenticator = Depends(get_authenticator),
) -> Identity:
    return authenticator.resolve(token)


def get_notifier(db: Session = Depends(get_db)) -> Notifier:
    return EmailNotifier(db)


def get_task_engine(db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)) -> TaskEngine:
    return TaskEngine(db, notifier)


def get_ledger(db: Session = Depends(get_db)) -> NotificationLedger:
    return NotificationLedger(db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_project_service(db: Session = Depends(get_db)) -> ProjectService:
    return ProjectService(db)
