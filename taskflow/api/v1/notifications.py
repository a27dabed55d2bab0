"""Notification endpoints"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from taskflow.dependencies import get_current_identity, get_ledger
from taskflow.schemas import NotificationResponse, UnreadCountResponse
from taskflow.services import Identity, NotificationLedger

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Maximum number of entries"),
    identity: Identity = Depends(get_current_identity),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """List notifications for the current user, newest first."""
    return ledger.list_for(identity.user_id, limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    identity: Identity = Depends(get_current_identity),
    ledger: NotificationLedger = Depends(get_ledger),
):
    return UnreadCountResponse(unread=ledger.unread_count(identity.user_id))


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
def mark_all_read(
    identity: Identity = Depends(get_current_identity),
    ledger: NotificationLedger = Depends(get_ledger),
):
    ledger.mark_all_read(identity.user_id)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_notification_read(
    notification_id: int,
    identity: Identity = Depends(get_current_identity),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """Mark one of the caller's notifications as read.

    Always answers 204 so the response does not reveal whether the id
    belongs to someone else.
    """
    ledger.mark_read(notification_id, identity.user_id)
