# core/security.py
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from core.database import get_session
from core.config import settings
from models.models import User, UserRole

logger = logging.getLogger(__name__)


# ========================================
# 🔑 JWT / APP CONFIG
# ========================================
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM or "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = getattr(settings, "ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# ========================================
# 🔐 Password Hashing (Argon2)
# ========================================
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash password using Argon2."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password using Argon2."""
    return pwd_context.verify(plain_password, hashed_password)


# ========================================
# 🔑 Token Helpers
# ========================================
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode JWT and return payload."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_token_for_user(user: User) -> str:
    return create_access_token(
        data={
            "sub": user.email,
            "user_id": user.id,
            "role": user.role,
        }
    )


# ========================================
# 👤 Authentication & Role Checks
# ========================================
def get_current_user(token: str = Depends(oauth2_scheme), session: Session = Depends(get_session)) -> User:
    """Extract user from token and load full record from DB."""
    payload = decode_token(token)
    user_id = payload.get("user_id")
    email = payload.get("sub")

    if not (user_id or email):
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = None
    if user_id:
        user = session.get(User, user_id)
    if not user and email:
        user = session.exec(select(User).where(User.email == email)).first()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is inactive")

    return user


def get_current_seller(current_user: User = Depends(get_current_user)) -> User:
    """Only sellers can spend bid tokens."""
    if current_user.role != UserRole.SELLER.value:
        raise HTTPException(status_code=403, detail="Only sellers can perform this action")
    return current_user


def get_current_buyer(current_user: User = Depends(get_current_user)) -> User:
    """Only buyers can post projects."""
    if current_user.role != UserRole.BUYER.value:
        raise HTTPException(status_code=403, detail="Only buyers can perform this action")
    return current_user


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require Admin."""
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return current_user
