# message_schema.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1, max_length=5000)
    project_id: Optional[int] = None


class MessageRead(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    project_id: Optional[int] = None
    content: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationRead(BaseModel):
    partner_id: int
    partner_name: str
    last_message: str
    last_message_at: datetime
    unread_count: int

    model_config = ConfigDict(from_attributes=True)
