# notification_schema.py
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class NotificationRead(BaseModel):
    id: int
    title: str
    description: str
    type: str
    related_id: Optional[int] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountRead(BaseModel):
    unread: int
