"""Session-backed authentication."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.database import utcnow
from taskflow.errors import Forbidden, InvalidCredentials, NotFound, Unauthenticated
from taskflow.models import User, UserRole, UserSession, UserStatus
from taskflow.security import burn_password_check, generate_session_token, verify_password
from taskflow.services.policy import Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class LoginResult:
    user: User
    session_token: str
    expires_at: datetime


class Authenticator:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        session_ttl: Optional[timedelta] = None,
    ):
        self.db = db
        self.clock = clock
        self.session_ttl = session_ttl or timedelta(hours=settings.SESSION_TTL_HOURS)

    def login(self, identifier: str, password: str, client_meta: Optional[ClientMeta] = None) -> LoginResult:
        """Check the credentials of an active user and open a new session.

        ``identifier`` matches either the username or the email address.
        Nothing is written when the check fails.
        """
        client_meta = client_meta or ClientMeta()
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise InvalidCredentials()

        # Stored addresses are normalized, so the email match ignores case.
        user = (
            self.db.query(User)
            .filter(
                or_(User.username == identifier, func.lower(User.email) == identifier.lower()),
                User.status == UserStatus.ACTIVE,
            )
            .first()
        )
        if user is None:
            burn_password_check(password)
            logger.info("Login failed for %r from %s", identifier, client_meta.ip_address)
            raise InvalidCredentials()
        if not verify_password(password, user.password_hash):
            logger.info("Login failed for %r from %s", identifier, client_meta.ip_address)
            raise InvalidCredentials()

        now = self.clock()
        session = UserSession(
            id=generate_session_token(),
            user_id=user.id,
            ip_address=client_meta.ip_address or "unknown",
            user_agent=client_meta.user_agent or "unknown",
            created_at=now,
            expires_at=now + self.session_ttl,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(user)
        logger.info("User %s logged in from %s", user.id, session.ip_address)
        return LoginResult(user=user, session_token=session.id, expires_at=session.expires_at)

    def logout(self, session_token: Optional[str]) -> None:
        if not session_token:
            return
        deleted = (
            self.db.query(UserSession)
            .filter(UserSession.id == session_token)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info("Session closed")

    def resolve(self, session_token: Optional[str]) -> Identity:
        if not session_token:
            raise Unauthenticated()
        row = (
            self.db.query(UserSession.user_id, User.role)
            .join(User, User.id == UserSession.user_id)
            .filter(UserSession.id == session_token, UserSession.expires_at > self.clock())
            .first()
        )
        if row is None:
            raise Unauthenticated()
        user_id, role = row
        return Identity(user_id=user_id, role=UserRole(role))

    def profile(self, identity: Identity) -> User:
        user = self.db.get(User, identity.user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def revoke_user_sessions(self, user_id: int) -> int:
        """Delete every session of ``user_id``. The caller commits."""
        return (
            self.db.query(UserSession)
            .filter(UserSession.user_id == user_id)
            .delete(synchronize_session=False)
        )

    def purge_expired(self) -> int:
        purged = (
            self.db.query(UserSession)
            .filter(UserSession.expires_at <= self.clock())
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return purged


def require_role(identity: Identity, role: UserRole) -> None:
    if identity.role != role:
        raise Forbidden("Admin access required" if role == UserRole.ADMIN else "Access denied")
