# service_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class ServiceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    price: float = Field(..., ge=0)


class ServiceRead(BaseModel):
    id: int
    seller_id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    price: float
    is_featured: bool
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
