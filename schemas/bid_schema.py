# bid_schema.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime


class BidCreate(BaseModel):
    # Range and length rules live in the bid workflow so every caller gets them
    bid_amount: float
    message: str
    delivery_days: int


class BidRead(BaseModel):
    id: int
    project_id: int
    seller_id: int
    bid_amount: float
    message: str
    delivery_days: int
    status: str
    tokens_spent: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BidSubmitResponse(BaseModel):
    bid: BidRead
    tokens_spent: int
    balance_after: int


class BidStatusUpdate(BaseModel):
    status: str
