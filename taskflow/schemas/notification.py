"""Schemas for user notifications"""
from datetime import datetime

from pydantic import BaseModel

from taskflow.models import NotificationType


class NotificationResponse(BaseModel):
    id: int
    task_id: int
    user_id: int
    type: NotificationType
    message: str
    is_read: bool
    delivery_attempted: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int
