# ================================================================
# services/bid_service.py: spend tokens to bid on a project
# ================================================================
"""
Bid submission and the owner's accept/reject action.

A submission computes the token cost once, checks it against the stored
balance, then inserts the bid and debits the balance inside one transaction.
The bid's UNIQUE(project_id, seller_id) constraint and the conditional debit
are the real guards; the earlier reads only produce friendlier errors.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence
import logging
import math

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.config import settings
from core.errors import (
    DuplicateBid,
    InsufficientTokens,
    InvalidBidTransition,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from models.models import (
    Bid,
    BidStatus,
    BidTokenTier,
    LedgerReason,
    NotificationType,
    Project,
    ProjectStatus,
    User,
    UserRole,
)
from services.ledger import debit_tokens, get_balance
from services.notification_service import create_notification
from services.token_pricing import load_active_tiers, tokens_required_for_budget

logger = logging.getLogger(__name__)


class BidSubmissionState(str, Enum):
    IDLE = "idle"
    CHECKING_BALANCE = "checking_balance"
    CHECKING_DUPLICATE = "checking_duplicate"
    INSERTING_BID = "inserting_bid"
    DEBITING_BALANCE = "debiting_balance"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BidSubmissionResult:
    bid: Bid
    tokens_spent: int
    balance_after: int


def compose_bid_message(cover_letter: str, delivery_days: int) -> str:
    return f"{cover_letter.strip()}\n\nProposed delivery: {delivery_days} day(s)"


def find_existing_bid(session: Session, project_id: int, seller_id: int) -> Optional[Bid]:
    statement = select(Bid).where(Bid.project_id == project_id, Bid.seller_id == seller_id)
    return session.exec(statement).first()


class BidSubmissionWorkflow:
    """
    One submission attempt.

    States run idle -> checking_duplicate -> checking_balance ->
    inserting_bid -> debiting_balance -> done, or end in failed. A failed
    attempt leaves neither a bid row nor a debit behind.
    """

    def __init__(
        self,
        session: Session,
        tiers_loader: Callable[[Session], Sequence[BidTokenTier]] = load_active_tiers,
    ):
        self.session = session
        self.tiers_loader = tiers_loader
        self.state = BidSubmissionState.IDLE
        self.transitions: List[BidSubmissionState] = [BidSubmissionState.IDLE]
        self.tokens_required: Optional[int] = None

    def _transition(self, state: BidSubmissionState) -> None:
        logger.debug(f"🔄 Bid submission {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)

    # ------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------
    @staticmethod
    def _validate(bid_amount, message: str, delivery_days) -> None:
        if (
            isinstance(bid_amount, bool)
            or not isinstance(bid_amount, (int, float))
            or not math.isfinite(bid_amount)
            or bid_amount <= 0
        ):
            raise ValidationFailed("Please enter a valid bid amount.", context={"field": "bid_amount"})

        if isinstance(delivery_days, bool) or not isinstance(delivery_days, int) or delivery_days < 1:
            raise ValidationFailed(
                "Please provide an estimated delivery timeline.", context={"field": "delivery_days"}
            )

        min_length = settings.BID_MESSAGE_MIN_LENGTH
        if not message or len(message.strip()) < min_length:
            raise ValidationFailed(
                f"Please enter a message of at least {min_length} characters.",
                context={"field": "message", "min_length": min_length},
            )

    def _load_project(self, project_id: int, seller_id: int) -> Project:
        project = self.session.get(Project, project_id)
        if not project:
            raise NotFound("Project not found", context={"project_id": project_id})
        if project.status != ProjectStatus.OPEN.value:
            raise ValidationFailed("This project is no longer accepting bids.", context={"field": "project_id"})
        if project.owner_id == seller_id:
            raise ValidationFailed("You cannot bid on your own project.", context={"field": "project_id"})
        return project

    # ------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------
    def submit(
        self,
        seller: Optional[User],
        project_id: int,
        bid_amount: float,
        message: str,
        delivery_days: int,
    ) -> BidSubmissionResult:
        if self.state != BidSubmissionState.IDLE:
            raise RuntimeError("BidSubmissionWorkflow handles a single submission")

        try:
            result = self._submit(seller, project_id, bid_amount, message, delivery_days)
        except Exception:
            self._transition(BidSubmissionState.FAILED)
            raise

        self._transition(BidSubmissionState.DONE)
        self._notify_owner(result, seller)
        return result

    def _submit(self, seller, project_id, bid_amount, message, delivery_days) -> BidSubmissionResult:
        if seller is None or seller.id is None:
            raise PermissionDenied("You need to be logged in to place a bid.")
        if seller.role != UserRole.SELLER.value:
            raise PermissionDenied("Only sellers can place bids on projects.")

        seller_id = seller.id
        self._validate(bid_amount, message, delivery_days)
        project = self._load_project(project_id, seller_id)

        self._transition(BidSubmissionState.CHECKING_DUPLICATE)
        if find_existing_bid(self.session, project_id, seller_id):
            raise DuplicateBid()

        self._transition(BidSubmissionState.CHECKING_BALANCE)
        # Computed once: the same value is checked, recorded and debited
        cost = tokens_required_for_budget(project.budget, self.tiers_loader(self.session))
        self.tokens_required = cost
        balance = get_balance(self.session, seller_id)
        if balance < cost:
            raise InsufficientTokens(required=cost, balance=balance)

        self._transition(BidSubmissionState.INSERTING_BID)
        bid = Bid(
            project_id=project_id,
            seller_id=seller_id,
            bid_amount=float(bid_amount),
            message=compose_bid_message(message, delivery_days),
            delivery_days=delivery_days,
            status=BidStatus.PENDING.value,
            tokens_spent=cost,
        )
        try:
            self.session.add(bid)
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            if find_existing_bid(self.session, project_id, seller_id):
                logger.info(f"⚠️ Concurrent duplicate bid by seller {seller_id} on project {project_id}")
                raise DuplicateBid()
            raise

        self._transition(BidSubmissionState.DEBITING_BALANCE)
        try:
            if cost > 0:
                balance_after = debit_tokens(
                    self.session,
                    seller_id,
                    cost,
                    reason=LedgerReason.BID.value,
                    reference=f"bid:{bid.id}",
                )
            else:
                balance_after = get_balance(self.session, seller_id)
            self.session.commit()
        except (InsufficientTokens, SQLAlchemyError):
            self.session.rollback()
            raise

        self.session.refresh(bid)
        logger.info(
            f"✅ Bid {bid.id} placed by seller {seller_id} on project {project_id}, "
            f"{cost} tokens spent, balance={balance_after}"
        )
        return BidSubmissionResult(bid=bid, tokens_spent=cost, balance_after=balance_after)

    def _notify_owner(self, result: BidSubmissionResult, seller: User) -> None:
        """Best effort: the bid is already committed."""
        bid = result.bid
        try:
            project = self.session.get(Project, bid.project_id)
            seller_name = seller.full_name or seller.username or "A seller"
            create_notification(
                self.session,
                user_id=project.owner_id,
                title=f"New bid from {seller_name}",
                description=(
                    f"{seller_name} placed a bid of £{bid.bid_amount:.2f} "
                    f"on your project \"{project.title}\""
                ),
                type=NotificationType.BID.value,
                related_id=bid.id,
            )
        except Exception as e:
            self.session.rollback()
            logger.error(f"❌ Could not notify project owner about bid {bid.id}: {e}")


def submit_bid(
    session: Session,
    seller: Optional[User],
    project_id: int,
    bid_amount: float,
    message: str,
    delivery_days: int,
) -> BidSubmissionResult:
    return BidSubmissionWorkflow(session).submit(seller, project_id, bid_amount, message, delivery_days)


# ============================================================
# Owner actions
# ============================================================
def update_bid_status(session: Session, owner: User, bid_id: int, status: str) -> Bid:
    """Accept or reject a pending bid. Only the project owner may do this."""
    if status not in (BidStatus.ACCEPTED.value, BidStatus.REJECTED.value):
        raise ValidationFailed("Status must be 'accepted' or 'rejected'.", context={"field": "status"})

    bid = session.get(Bid, bid_id)
    if not bid:
        raise NotFound("Bid not found", context={"bid_id": bid_id})

    project = session.get(Project, bid.project_id)
    if not project or project.owner_id != owner.id:
        raise PermissionDenied("Only the project owner can update this bid.")

    now = datetime.utcnow()
    try:
        result = session.exec(
            update(Bid)
            .where(Bid.id == bid_id, Bid.status == BidStatus.PENDING.value)
            .values(status=status, updated_at=now)
        )
        if result.rowcount == 0:
            session.rollback()
            raise InvalidBidTransition(
                f"Only pending bids can be {status}.",
                context={"bid_id": bid_id},
            )

        if status == BidStatus.ACCEPTED.value and project.status == ProjectStatus.OPEN.value:
            project.status = ProjectStatus.IN_PROGRESS.value
            project.updated_at = now
            session.add(project)

        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"❌ Failed to update bid {bid_id}: {e}")
        raise

    session.refresh(bid)
    logger.info(f"✅ Bid {bid_id} {status} by project owner {owner.id}")

    try:
        create_notification(
            session,
            user_id=bid.seller_id,
            title=f"Your bid was {status}",
            description=f"Your bid on \"{project.title}\" was {status}.",
            type=NotificationType.BID.value,
            related_id=bid.id,
        )
    except Exception as e:
        session.rollback()
        logger.error(f"❌ Could not notify seller about bid {bid_id}: {e}")

    return bid


def list_bids_for_project(session: Session, owner: User, project_id: int) -> List[Bid]:
    project = session.get(Project, project_id)
    if not project:
        raise NotFound("Project not found", context={"project_id": project_id})
    if project.owner_id != owner.id:
        raise PermissionDenied("Only the project owner can view its bids.")

    statement = select(Bid).where(Bid.project_id == project_id).order_by(Bid.created_at.desc(), Bid.id.desc())
    return list(session.exec(statement).all())


def list_bids_for_seller(session: Session, seller_id: int) -> List[Bid]:
    statement = select(Bid).where(Bid.seller_id == seller_id).order_by(Bid.created_at.desc(), Bid.id.desc())
    return list(session.exec(statement).all())
