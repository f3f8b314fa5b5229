# routes/tokens.py
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select
from typing import List
import logging

from core.database import get_session
from core.security import get_current_admin, get_current_user
from models.models import TokenPlan, TokenPurchase, User
from schemas.token_schema import (
    TokenBalanceRead,
    TokenGrantRequest,
    TokenLedgerEntryRead,
    TokenPlanRead,
    TokenPurchaseRead,
)
from services.ledger import get_balance, grant_tokens, list_ledger_entries

router = APIRouter(tags=["Tokens"])
logger = logging.getLogger(__name__)


@router.get("/balance", response_model=TokenBalanceRead)
def get_token_balance(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return TokenBalanceRead(user_id=current_user.id, bid_tokens=get_balance(session, current_user.id))


@router.get("/plans", response_model=List[TokenPlanRead])
def get_token_plans(session: Session = Depends(get_session)):
    """Active token packs, smallest first."""
    plans = session.exec(
        select(TokenPlan)
        .where(TokenPlan.is_active == True)  # noqa: E712
        .order_by(TokenPlan.tokens)
    ).all()
    return plans


@router.get("/purchases", response_model=List[TokenPurchaseRead])
def get_token_purchases(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    purchases = session.exec(
        select(TokenPurchase)
        .where(TokenPurchase.seller_id == current_user.id)
        .order_by(TokenPurchase.created_at.desc(), TokenPurchase.id.desc())
    ).all()
    return purchases


@router.get("/ledger", response_model=List[TokenLedgerEntryRead])
def get_token_ledger(
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return list_ledger_entries(session, current_user.id, limit=limit)


# ==================================================================
#  🔐 Admin grant
# ==================================================================
@router.post("/grant", response_model=TokenBalanceRead)
def grant(
    data: TokenGrantRequest,
    current_user: User = Depends(get_current_admin),
    session: Session = Depends(get_session)
):
    balance = grant_tokens(session, data.user_id, data.tokens, granted_by=current_user.id, note=data.note)
    logger.info(f"🎁 Admin {current_user.id} granted {data.tokens} tokens to user {data.user_id}")
    return TokenBalanceRead(user_id=data.user_id, bid_tokens=balance)
