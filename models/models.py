# carebid_backend/models.py
from typing import Optional, List
from datetime import datetime
from enum import Enum
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import UniqueConstraint, CheckConstraint, Index, text
from pydantic import EmailStr


# ============================================================
# ENUMS
# ============================================================
class UserRole(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class ProjectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class EntitlementType(str, Enum):
    BUYER_PRO = "buyer_pro"
    SELLER_PLUS = "seller_plus"


class EntitlementStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class LedgerReason(str, Enum):
    GRANT = "grant"
    PURCHASE = "purchase"
    BID = "bid"


class NotificationType(str, Enum):
    ORDER = "order"
    MESSAGE = "message"
    SYSTEM = "system"
    REVIEW = "review"
    BID = "bid"


# ============================================================
# USER (buyer / seller / admin account + token balance)
# ============================================================
class User(SQLModel, table=True):
    __tablename__ = "user"
    __table_args__ = (
        CheckConstraint("bid_tokens >= 0", name="ck_user_bid_tokens_non_negative"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str = Field(max_length=100)
    email: EmailStr = Field(index=True, unique=True, max_length=100, nullable=False)
    username: Optional[str] = Field(default=None, max_length=50, index=True)
    password_hash: str = Field(nullable=False)

    role: str = Field(default=UserRole.BUYER.value, max_length=20, index=True)
    is_active: bool = Field(default=True)

    # Spendable bid tokens (sellers)
    bid_tokens: int = Field(default=0, nullable=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Profile
    bio: Optional[str] = None
    location: Optional[str] = None

    # Relationships
    projects: List["Project"] = Relationship(back_populates="owner")
    bids: List["Bid"] = Relationship(back_populates="seller")

    @property
    def is_seller(self) -> bool:
        return self.role == UserRole.SELLER.value

    @property
    def is_buyer(self) -> bool:
        return self.role == UserRole.BUYER.value


# ============================================================
# PROJECT (posted by a buyer)
# ============================================================
class Project(SQLModel, table=True):
    __tablename__ = "project"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100, index=True)
    budget: float = Field(default=0.0, ge=0)
    status: str = Field(default=ProjectStatus.OPEN.value, max_length=20, index=True)
    deadline: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    owner: "User" = Relationship(back_populates="projects")
    bids: List["Bid"] = Relationship(back_populates="project")


# ============================================================
# BID (one per project/seller pair)
# ============================================================
class Bid(SQLModel, table=True):
    __tablename__ = "bid"
    __table_args__ = (UniqueConstraint("project_id", "seller_id", name="uq_bid_project_seller"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="project.id", nullable=False, index=True)
    seller_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    bid_amount: float = Field(gt=0)
    message: str = Field(max_length=10000)
    delivery_days: int = Field(default=1, ge=1)
    status: str = Field(default=BidStatus.PENDING.value, max_length=20, index=True)
    tokens_spent: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    project: "Project" = Relationship(back_populates="bids")
    seller: "User" = Relationship(back_populates="bids")


# ============================================================
# BID TOKEN TIER (budget -> token cost)
# ============================================================
class BidTokenTier(SQLModel, table=True):
    __tablename__ = "bid_token_tier"

    id: Optional[int] = Field(default=None, primary_key=True)
    min_budget: float = Field(default=0.0, ge=0, description="Inclusive lower bound")
    max_budget: Optional[float] = Field(default=None, description="Exclusive upper bound, None = unbounded")
    tokens_required: int = Field(default=1)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# TOKEN PLAN (purchasable token pack)
# ============================================================
class TokenPlan(SQLModel, table=True):
    __tablename__ = "token_plan"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    tokens: int = Field(gt=0)
    price: float = Field(default=0.0, ge=0)
    currency: str = Field(default="GBP", max_length=3)
    is_popular: bool = Field(default=False)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# PRICING PLAN (subscriptions: buyer-pro / seller-plus)
# ============================================================
class PricingPlan(SQLModel, table=True):
    __tablename__ = "pricing_plan"

    id: Optional[int] = Field(default=None, primary_key=True)
    slug: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price_cents: int = Field(default=0, ge=0)
    currency: str = Field(default="GBP", max_length=3)
    billing_interval: str = Field(default="month", max_length=10)
    duration_days: int = Field(default=30, description="Default entitlement duration for the plan")
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# TOKEN PURCHASE (payment audit record)
# ============================================================
class TokenPurchase(SQLModel, table=True):
    __tablename__ = "token_purchase"

    id: Optional[int] = Field(default=None, primary_key=True)
    seller_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    plan_id: Optional[int] = Field(default=None, foreign_key="token_plan.id", index=True)
    tokens: int = Field(gt=0)
    amount: float = Field(default=0.0, ge=0)
    currency: str = Field(default="GBP", max_length=3)
    status: str = Field(default=PurchaseStatus.COMPLETED.value, max_length=20)

    # Idempotency key: one purchase per Stripe checkout session
    stripe_session_id: str = Field(unique=True, index=True, max_length=255)
    stripe_payment_intent: Optional[str] = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# TOKEN LEDGER ENTRY (append-only balance history)
# ============================================================
class TokenLedgerEntry(SQLModel, table=True):
    __tablename__ = "token_ledger_entry"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    delta: int
    balance_after: int = Field(ge=0)
    reason: str = Field(max_length=20, index=True)
    reference: Optional[str] = Field(default=None, max_length=255, index=True)
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# ENTITLEMENT (buyer pro / seller plus)
# ============================================================
class Entitlement(SQLModel, table=True):
    __tablename__ = "entitlement"
    __table_args__ = (
        # At most one active row per account and type
        Index(
            "uq_entitlement_active_per_account",
            "account_id",
            "entitlement_type",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    entitlement_type: str = Field(max_length=20, index=True)
    status: str = Field(default=EntitlementStatus.ACTIVE.value, max_length=20, index=True)

    plan_id: Optional[int] = Field(default=None, foreign_key="pricing_plan.id")
    plan_slug: Optional[str] = Field(default=None, max_length=50)

    starts_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: Optional[datetime] = Field(default=None, index=True)
    stripe_session_id: Optional[str] = Field(default=None, max_length=255, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def is_current(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        if self.status != EntitlementStatus.ACTIVE.value:
            return False
        return self.expires_at is None or self.expires_at > now


# ============================================================
# SERVICE (seller listing)
# ============================================================
class Service(SQLModel, table=True):
    __tablename__ = "service"

    id: Optional[int] = Field(default=None, primary_key=True)
    seller_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    price: float = Field(default=0.0, ge=0)
    is_featured: bool = Field(default=False, index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# NOTIFICATION
# ============================================================
class Notification(SQLModel, table=True):
    __tablename__ = "notification"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    title: str = Field(max_length=200)
    description: str = Field(default="", max_length=1000)
    type: str = Field(default=NotificationType.SYSTEM.value, max_length=20)
    related_id: Optional[int] = None
    is_read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# MESSAGE (direct message between two accounts)
# ============================================================
class Message(SQLModel, table=True):
    __tablename__ = "message"
    __table_args__ = (
        Index("ix_message_receiver_unread", "receiver_id", "is_read"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    sender_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    receiver_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    project_id: Optional[int] = Field(default=None, foreign_key="project.id", index=True)
    content: str = Field(max_length=5000)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# WEBHOOK EVENT LOG
# ============================================================
class WebhookEvent(SQLModel, table=True):
    __tablename__ = "webhook_event"

    id: Optional[int] = Field(default=None, primary_key=True)
    stripe_event_id: str = Field(unique=True, index=True, max_length=255)
    event_type: str = Field(max_length=100, index=True)

    payload: str = Field()
    processed: bool = Field(default=False)
    outcome: Optional[str] = Field(default=None, max_length=30)
    processing_error: Optional[str] = None

    account_id: Optional[int] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================
# EXPORTS
# ============================================================
__all__ = [
    "User",
    "Project",
    "Bid",
    "BidTokenTier",
    "TokenPlan",
    "PricingPlan",
    "TokenPurchase",
    "TokenLedgerEntry",
    "Entitlement",
    "Service",
    "Notification",
    "Message",
    "WebhookEvent",
    "UserRole",
    "ProjectStatus",
    "BidStatus",
    "EntitlementType",
    "EntitlementStatus",
    "PurchaseStatus",
    "LedgerReason",
    "NotificationType",
]
