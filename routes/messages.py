# routes/messages.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session
from typing import List

from core.database import get_session
from core.security import get_current_user
from models.models import User
from schemas.message_schema import ConversationRead, MessageCreate, MessageRead
from schemas.notification_schema import UnreadCountRead
from services.message_service import (
    list_conversation,
    list_conversations,
    mark_conversation_read,
    mark_message_read,
    send_message,
    unread_message_count,
)

router = APIRouter(tags=["Messages"])


@router.post("/", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def create_message(
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return send_message(session, current_user, data.receiver_id, data.content, project_id=data.project_id)


@router.get("/conversations", response_model=List[ConversationRead])
def get_conversations(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return list_conversations(session, current_user.id, limit=limit)


@router.get("/unread-count", response_model=UnreadCountRead)
def get_unread_message_count(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return UnreadCountRead(unread=unread_message_count(session, current_user.id))


@router.get("/with/{partner_id}", response_model=List[MessageRead])
def get_conversation(
    partner_id: int,
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return list_conversation(session, current_user.id, partner_id, limit=limit)


@router.post("/with/{partner_id}/read")
def read_conversation(
    partner_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return {"updated": mark_conversation_read(session, current_user.id, partner_id)}


@router.post("/{message_id}/read", response_model=MessageRead)
def read_message(
    message_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    message = mark_message_read(session, current_user.id, message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message
