# user_schema.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum


class SignupRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


# ---------------------------
# Create & Auth
# ---------------------------
class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    username: Optional[str] = Field(default=None, max_length=50)
    role: SignupRole = SignupRole.BUYER
    # admin accounts are created by the seed script only


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str


# ---------------------------
# Read
# ---------------------------
class UserRead(BaseModel):
    id: int
    full_name: str = Field(..., max_length=100)
    email: EmailStr
    username: Optional[str] = Field(default=None, max_length=50)
    role: str = Field(..., max_length=20)
    is_active: bool = Field(default=True)
    bid_tokens: int = 0
    created_at: datetime
    bio: Optional[str] = None
    location: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
