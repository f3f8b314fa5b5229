from fastapi import APIRouter, HTTPException, Depends, status
from sqlmodel import Session, select
from datetime import datetime
import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import User
from schemas.user_schema import UserCreate, UserLogin, UserRead, TokenResponse
from core.database import get_session
from core.security import (
    hash_password, verify_password, create_token_for_user,
    get_current_user
)

router = APIRouter(tags=["Authentication"])
logger = logging.getLogger(__name__)


# ==========================================================
# ✅ Signup: buyer or seller account
# ==========================================================
@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(user_data: UserCreate, session: Session = Depends(get_session)):
    """Create a buyer or seller account and return a bearer token."""
    existing = session.exec(select(User).where(User.email == user_data.email)).first()
    if existing:
        raise HTTPException(
            status_code=400,
            detail="An account with this email already exists. Please log in instead."
        )

    new_user = User(
        full_name=user_data.full_name,
        email=user_data.email,
        username=user_data.username,
        password_hash=hash_password(user_data.password),
        role=user_data.role.value,
        is_active=True,
        bid_tokens=0,
        created_at=datetime.utcnow(),
    )

    try:
        session.add(new_user)
        session.commit()
        session.refresh(new_user)
    except IntegrityError:
        session.rollback()
        raise HTTPException(
            status_code=400,
            detail="An account with this email already exists. Please log in instead."
        )
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Database error during signup: {e}")
        raise HTTPException(
            status_code=500,
            detail="Something went wrong while creating your account. Please try again later."
        )

    logger.info(f"📝 New {new_user.role} account {new_user.id} ({new_user.email})")
    return TokenResponse(
        access_token=create_token_for_user(new_user),
        user_id=new_user.id,
        role=new_user.role,
    )


# ==========================================================
# ✅ Login
# ==========================================================
@router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, session: Session = Depends(get_session)):
    """Authenticate with email and password."""
    db_user = session.exec(select(User).where(User.email == credentials.email)).first()

    if not db_user or not verify_password(credentials.password, db_user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password.")

    if not db_user.is_active:
        raise HTTPException(status_code=403, detail="Your account is inactive. Contact support.")

    return TokenResponse(
        access_token=create_token_for_user(db_user),
        user_id=db_user.id,
        role=db_user.role,
    )


# ==========================================================
# ✅ Get Current Authenticated User
# ==========================================================
@router.get("/me", response_model=UserRead)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's information"""
    return current_user
