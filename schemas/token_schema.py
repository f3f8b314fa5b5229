# token_schema.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class TokenBalanceRead(BaseModel):
    user_id: int
    bid_tokens: int


class TokenPlanRead(BaseModel):
    id: int
    slug: str
    name: str
    description: Optional[str] = None
    tokens: int
    price: float
    currency: str
    is_popular: bool

    model_config = ConfigDict(from_attributes=True)


class TokenPurchaseRead(BaseModel):
    id: int
    plan_id: Optional[int] = None
    tokens: int
    amount: float
    currency: str
    status: str
    stripe_session_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenLedgerEntryRead(BaseModel):
    id: int
    delta: int
    balance_after: int
    reason: str
    reference: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenGrantRequest(BaseModel):
    user_id: int
    tokens: int = Field(..., gt=0)
    note: Optional[str] = Field(default=None, max_length=500)
