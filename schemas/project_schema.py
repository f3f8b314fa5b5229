# project_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    budget: float = Field(..., ge=0)
    deadline: Optional[datetime] = None
    # owner_id is set server-side


class ProjectRead(BaseModel):
    id: int
    owner_id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    budget: float
    status: str
    deadline: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BidCostRead(BaseModel):
    project_id: int
    budget: float
    tokens_required: int
    balance: Optional[int] = None
    can_afford: Optional[bool] = None
