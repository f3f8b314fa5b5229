from .bid_schema import BidCreate, BidRead, BidSubmitResponse, BidStatusUpdate
from .message_schema import MessageCreate, MessageRead, ConversationRead
from .notification_schema import NotificationRead, UnreadCountRead
from .payment_schema import CheckoutType, CheckoutSessionRequest, CheckoutSessionResponse, EntitlementsRead
from .project_schema import ProjectCreate, ProjectRead, BidCostRead
from .service_schema import ServiceCreate, ServiceRead
from .token_schema import (
    TokenBalanceRead, TokenPlanRead, TokenPurchaseRead,
    TokenLedgerEntryRead, TokenGrantRequest
)
from .user_schema import UserCreate, UserLogin, UserRead, TokenResponse, SignupRole

__all__ = [
    # Bid
    "BidCreate", "BidRead", "BidSubmitResponse", "BidStatusUpdate",

    # Message
    "MessageCreate", "MessageRead", "ConversationRead",

    # Notification
    "NotificationRead", "UnreadCountRead",

    # Payment
    "CheckoutType", "CheckoutSessionRequest", "CheckoutSessionResponse", "EntitlementsRead",

    # Project
    "ProjectCreate", "ProjectRead", "BidCostRead",

    # Service
    "ServiceCreate", "ServiceRead",

    # Token
    "TokenBalanceRead", "TokenPlanRead", "TokenPurchaseRead",
    "TokenLedgerEntryRead", "TokenGrantRequest",

    # User
    "UserCreate", "UserLogin", "UserRead", "TokenResponse", "SignupRole",
]
