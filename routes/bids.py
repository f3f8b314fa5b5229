# routes/bids.py
from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import List

from core.database import get_session
from core.security import get_current_user, get_current_seller
from models.models import User
from schemas.bid_schema import BidRead, BidStatusUpdate
from services.bid_service import list_bids_for_seller, update_bid_status

router = APIRouter(tags=["Bids"])


@router.get("/mine", response_model=List[BidRead])
def get_my_bids(
    current_user: User = Depends(get_current_seller),
    session: Session = Depends(get_session)
):
    return list_bids_for_seller(session, current_user.id)


@router.patch("/{bid_id}/status", response_model=BidRead)
def set_bid_status(
    bid_id: int,
    data: BidStatusUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Project owner accepts or rejects a pending bid."""
    return update_bid_status(session, current_user, bid_id, data.status)
