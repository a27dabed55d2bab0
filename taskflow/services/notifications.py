"""Append-only record of task lifecycle events, one row per affected user."""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from taskflow.config import settings
from taskflow.models import Notification, NotificationType


class NotificationLedger:
    def __init__(self, db: Session):
        self.db = db

    def append(self, task_id: int, user_id: int, type: NotificationType, message: str) -> int:
        """Add an entry inside the caller's transaction and return its id."""
        notification = Notification(
            task_id=task_id,
            user_id=user_id,
            type=NotificationType(type),
            message=message,
        )
        self.db.add(notification)
        self.db.flush()
        return notification.id

    def list_for(self, user_id: int, limit: Optional[int] = None) -> List[Notification]:
        limit = limit or settings.NOTIFICATION_LIST_LIMIT
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def mark_read(self, notification_id: int, user_id: int) -> None:
        # Scoped to the owner; a foreign or unknown id updates nothing.
        self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).update({Notification.is_read: True}, synchronize_session=False)
        self.db.commit()

    def mark_all_read(self, user_id: int) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )

    def record_delivery(self, notification_id: int, attempted: bool = True) -> None:
        self.db.query(Notification).filter(Notification.id == notification_id).update(
            {Notification.delivery_attempted: attempted}, synchronize_session=False
        )
        self.db.commit()
