# routes/projects.py
from fastapi import APIRouter, HTTPException, Depends, status
from sqlmodel import Session, select
from typing import List
from datetime import datetime
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc

from core.database import get_session
from core.errors import NotFound
from core.security import get_current_user, get_current_buyer, get_current_seller
from models.models import Project, ProjectStatus, User, UserRole
from schemas.bid_schema import BidCreate, BidRead, BidSubmitResponse
from schemas.project_schema import ProjectCreate, ProjectRead, BidCostRead
from services.bid_service import list_bids_for_project, submit_bid
from services.token_pricing import tokens_required_for_project

router = APIRouter(tags=["Projects"])
logger = logging.getLogger(__name__)


def _get_project_or_404(session: Session, project_id: int) -> Project:
    project = session.get(Project, project_id)
    if not project:
        raise NotFound("Project not found", context={"project_id": project_id})
    return project


# ==================================================================
#  ✅ Create New Project (buyers)
# ==================================================================
@router.post("/", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    data: ProjectCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_buyer)
):
    now = datetime.utcnow()
    project = Project(
        owner_id=current_user.id,
        title=data.title,
        description=data.description,
        category=data.category,
        budget=data.budget,
        deadline=data.deadline,
        status=ProjectStatus.OPEN.value,
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(project)
        session.commit()
        session.refresh(project)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Failed to create project: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="A database error occurred while creating the project."
        )

    logger.info(f"✅ Project {project.id} posted by buyer {current_user.id}")
    return project


# ==================================================================
#  ✅ Open Projects (newest first)
# ==================================================================
@router.get("/", response_model=List[ProjectRead])
def get_projects(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    projects = session.exec(
        select(Project)
        .where(Project.status == ProjectStatus.OPEN.value)
        .order_by(desc(Project.created_at), desc(Project.id))
    ).all()
    return projects


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return _get_project_or_404(session, project_id)


# ==================================================================
#  ✅ Bid cost for a project
# ==================================================================
@router.get("/{project_id}/bid-cost", response_model=BidCostRead)
def get_bid_cost(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Tokens a seller would spend to bid on this project."""
    project = _get_project_or_404(session, project_id)
    tokens_required = tokens_required_for_project(session, project)

    cost = BidCostRead(project_id=project.id, budget=project.budget, tokens_required=tokens_required)
    if current_user.role == UserRole.SELLER.value:
        cost.balance = current_user.bid_tokens
        cost.can_afford = current_user.bid_tokens >= tokens_required
    return cost


# ==================================================================
#  ✅ Bids
# ==================================================================
@router.post("/{project_id}/bids", response_model=BidSubmitResponse, status_code=status.HTTP_201_CREATED)
def place_bid(
    project_id: int,
    data: BidCreate,
    current_user: User = Depends(get_current_seller),
    session: Session = Depends(get_session)
):
    """Spend bid tokens to bid on an open project."""
    result = submit_bid(
        session,
        current_user,
        project_id=project_id,
        bid_amount=data.bid_amount,
        message=data.message,
        delivery_days=data.delivery_days,
    )
    return BidSubmitResponse(
        bid=BidRead.model_validate(result.bid),
        tokens_spent=result.tokens_spent,
        balance_after=result.balance_after,
    )


@router.get("/{project_id}/bids", response_model=List[BidRead])
def get_project_bids(
    project_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Bids on a project, visible to its owner."""
    return list_bids_for_project(session, current_user, project_id)
