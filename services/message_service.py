# ================================================================
# services/message_service.py: direct messages between accounts
# ================================================================
"""
Buyer/seller direct messages, grouped into one conversation per partner.

The unread-message count shares the notification cache (kind ``messages``),
keyed by the receiving account.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy import func, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.errors import NotFound, ValidationFailed
from models.models import Message, Project, User
from services.unread_counts import MESSAGES, cached_count, track_unread

logger = logging.getLogger(__name__)

track_unread(Message, "receiver_id", MESSAGES)

MAX_MESSAGE_LENGTH = 5000


@dataclass
class ConversationSummary:
    partner_id: int
    partner_name: str
    last_message: str
    last_message_at: datetime
    unread_count: int


def _between(user_id: int, partner_id: int):
    return or_(
        and_(Message.sender_id == user_id, Message.receiver_id == partner_id),
        and_(Message.sender_id == partner_id, Message.receiver_id == user_id),
    )


# ------------------------------------------------------------
# Reads
# ------------------------------------------------------------
def unread_message_count(session: Session, user_id: int) -> int:
    def count_unread() -> int:
        return session.exec(
            select(func.count())
            .select_from(Message)
            .where(Message.receiver_id == user_id, Message.is_read == False)  # noqa: E712
        ).one()

    return cached_count(user_id, MESSAGES, count_unread)


def list_conversations(session: Session, user_id: int, limit: int = 20) -> List[ConversationSummary]:
    """Most recent conversations first, one entry per partner."""
    messages = session.exec(
        select(Message)
        .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
    ).all()

    latest: Dict[int, Message] = {}
    for message in messages:
        partner_id = message.receiver_id if message.sender_id == user_id else message.sender_id
        if partner_id not in latest:
            latest[partner_id] = message
        if len(latest) >= limit:
            break

    if not latest:
        return []

    unread_rows = session.exec(
        select(Message.sender_id, func.count())
        .where(
            Message.receiver_id == user_id,
            Message.is_read == False,  # noqa: E712
            Message.sender_id.in_(list(latest)),
        )
        .group_by(Message.sender_id)
    ).all()
    unread_by_partner = {sender_id: count for sender_id, count in unread_rows}

    partners = {
        user.id: user
        for user in session.exec(select(User).where(User.id.in_(list(latest)))).all()
    }

    return [
        ConversationSummary(
            partner_id=partner_id,
            partner_name=_display_name(partners.get(partner_id)),
            last_message=message.content,
            last_message_at=message.created_at,
            unread_count=unread_by_partner.get(partner_id, 0),
        )
        for partner_id, message in latest.items()
    ]


def list_conversation(session: Session, user_id: int, partner_id: int, limit: int = 100) -> List[Message]:
    """Messages exchanged with one partner, oldest first."""
    recent = session.exec(
        select(Message)
        .where(_between(user_id, partner_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
    ).all()
    return list(reversed(recent))


def _display_name(user: Optional[User]) -> str:
    if user is None:
        return "Unknown user"
    return user.full_name or user.username or "Unknown user"


# ------------------------------------------------------------
# Writes
# ------------------------------------------------------------
def send_message(
    session: Session,
    sender: User,
    receiver_id: int,
    content: str,
    project_id: Optional[int] = None,
) -> Message:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Message cannot be empty.", context={"field": "content"})
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed(
            f"Message must be at most {MAX_MESSAGE_LENGTH} characters.",
            context={"field": "content", "max_length": MAX_MESSAGE_LENGTH},
        )
    if receiver_id == sender.id:
        raise ValidationFailed("You cannot message yourself.", context={"field": "receiver_id"})
    if session.get(User, receiver_id) is None:
        raise NotFound("Recipient not found", context={"receiver_id": receiver_id})
    if project_id is not None and session.get(Project, project_id) is None:
        raise NotFound("Project not found", context={"project_id": project_id})

    message = Message(
        sender_id=sender.id,
        receiver_id=receiver_id,
        project_id=project_id,
        content=content,
        is_read=False,
    )
    try:
        session.add(message)
        session.commit()
        session.refresh(message)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Failed to send message from {sender.id} to {receiver_id}: {e}")
        raise

    logger.info(f"✉️ Message {message.id} sent from user {sender.id} to user {receiver_id}")
    return message


def mark_message_read(session: Session, user_id: int, message_id: int) -> Optional[Message]:
    """Only the receiver can mark a message read."""
    message = session.get(Message, message_id)
    if not message or message.receiver_id != user_id:
        return None
    if not message.is_read:
        message.is_read = True
        session.add(message)
        session.commit()
        session.refresh(message)
    return message


def mark_conversation_read(session: Session, user_id: int, partner_id: int) -> int:
    unread = session.exec(
        select(Message).where(
            Message.sender_id == partner_id,
            Message.receiver_id == user_id,
            Message.is_read == False,  # noqa: E712
        )
    ).all()
    for message in unread:
        message.is_read = True
        session.add(message)
    session.commit()
    return len(unread)
