# routes/notifications.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session
from typing import List

from core.database import get_session
from core.security import get_current_user
from models.models import User
from schemas.notification_schema import NotificationRead, UnreadCountRead
from services.notification_service import (
    list_notifications,
    mark_all_as_read,
    mark_as_read,
    unread_count,
)

router = APIRouter(tags=["Notifications"])


@router.get("/", response_model=List[NotificationRead])
def get_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return list_notifications(session, current_user.id, limit=limit)


@router.get("/unread-count", response_model=UnreadCountRead)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return UnreadCountRead(unread=unread_count(session, current_user.id))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def read_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    notification = mark_as_read(session, current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/read-all")
def read_all_notifications(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    updated = mark_all_as_read(session, current_user.id)
    return {"updated": updated}
