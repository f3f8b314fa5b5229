# payment_schema.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class CheckoutType(str, Enum):
    TOKENS = "tokens"
    BUYER_PRO = "buyer_pro"
    SELLER_PLUS = "seller_plus"


# ---------------------------
# Checkout
# ---------------------------
class CheckoutSessionRequest(BaseModel):
    type: CheckoutType
    plan_slug: Optional[str] = Field(default=None, max_length=50)
    # user id always comes from the bearer token


class CheckoutSessionResponse(BaseModel):
    url: str
    session_id: str


# ---------------------------
# Entitlements
# ---------------------------
class EntitlementsRead(BaseModel):
    buyer_pro: bool
    seller_plus: bool
    seller_plus_expires_at: Optional[datetime] = None
