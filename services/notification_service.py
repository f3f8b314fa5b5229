# ================================================================
# services/notification_service.py: in-app notifications
# ================================================================
"""
Notifications for bids, orders and system events.

Unread counts are served from the shared cache in ``services.unread_counts``.
"""
from typing import List, Optional
import logging

from sqlalchemy import func
from sqlmodel import Session, select

from models.models import Notification, NotificationType
from services.unread_counts import NOTIFICATIONS, cached_count, track_unread

logger = logging.getLogger(__name__)

track_unread(Notification, "user_id", NOTIFICATIONS)


# ------------------------------------------------------------
# Reads
# ------------------------------------------------------------
def unread_count(session: Session, user_id: int) -> int:
    def count_unread() -> int:
        return session.exec(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        ).one()

    return cached_count(user_id, NOTIFICATIONS, count_unread)


def list_notifications(session: Session, user_id: int, limit: int = 50) -> List[Notification]:
    statement = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(session.exec(statement).all())


# ------------------------------------------------------------
# Writes
# ------------------------------------------------------------
def create_notification(
    session: Session,
    user_id: int,
    title: str,
    description: str,
    type: str = NotificationType.SYSTEM.value,
    related_id: Optional[int] = None,
) -> Notification:
    """Insert and commit one notification."""
    notification = Notification(
        user_id=user_id,
        title=title,
        description=description,
        type=type,
        related_id=related_id,
        is_read=False,
    )
    session.add(notification)
    session.commit()
    session.refresh(notification)
    logger.info(f"🔔 Notification {notification.id} created for user {user_id} ({type})")
    return notification


def mark_as_read(session: Session, user_id: int, notification_id: int) -> Optional[Notification]:
    notification = session.get(Notification, notification_id)
    if not notification or notification.user_id != user_id:
        return None
    if not notification.is_read:
        notification.is_read = True
        session.add(notification)
        session.commit()
        session.refresh(notification)
    return notification


def mark_all_as_read(session: Session, user_id: int) -> int:
    unread = session.exec(
        select(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False,  # noqa: E712
        )
    ).all()
    for notification in unread:
        notification.is_read = True
        session.add(notification)
    session.commit()
    return len(unread)
