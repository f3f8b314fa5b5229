# routes/services.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlmodel import Session, select
from typing import List, Optional
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc

from core.database import get_session
from core.security import get_current_seller
from models.models import Service, User
from schemas.service_schema import ServiceCreate, ServiceRead
from services.entitlement_service import is_seller_plus

router = APIRouter(tags=["Services"])
logger = logging.getLogger(__name__)


@router.post("/", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(
    data: ServiceCreate,
    current_user: User = Depends(get_current_seller),
    session: Session = Depends(get_session)
):
    """List a service. Seller Plus members are featured straight away."""
    service = Service(
        seller_id=current_user.id,
        title=data.title,
        description=data.description,
        category=data.category,
        price=data.price,
        is_featured=is_seller_plus(session, current_user.id),
    )
    try:
        session.add(service)
        session.commit()
        session.refresh(service)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Failed to create service: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="A database error occurred while creating the service."
        )
    return service


@router.get("/", response_model=List[ServiceRead])
def get_services(
    featured: Optional[bool] = Query(None),
    session: Session = Depends(get_session)
):
    """Active listings, featured first."""
    statement = select(Service).where(Service.is_active == True)  # noqa: E712
    if featured is not None:
        statement = statement.where(Service.is_featured == featured)
    statement = statement.order_by(desc(Service.is_featured), desc(Service.created_at), desc(Service.id))
    return session.exec(statement).all()
