# ================================================================
# services/token_pricing.py: project budget -> bid token cost
# ================================================================
import logging
import math
from decimal import Decimal
from numbers import Real
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.config import settings
from models.models import BidTokenTier, Project

logger = logging.getLogger(__name__)

# Seeded tiers; min inclusive, max exclusive, None = unbounded
DEFAULT_BID_TOKEN_TIERS: List[Dict] = [
    {"min_budget": 0.0, "max_budget": 250.0, "tokens_required": 1},
    {"min_budget": 250.0, "max_budget": 1000.0, "tokens_required": 2},
    {"min_budget": 1000.0, "max_budget": 5000.0, "tokens_required": 3},
    {"min_budget": 5000.0, "max_budget": None, "tokens_required": 5},
]


def _is_valid_budget(budget) -> bool:
    if isinstance(budget, bool) or not isinstance(budget, (Real, Decimal)):
        return False
    return math.isfinite(budget) and budget >= 0


def _tier_matches(tier: BidTokenTier, budget: float) -> bool:
    if budget < tier.min_budget:
        return False
    return tier.max_budget is None or budget < tier.max_budget


def tokens_required_for_budget(
    budget,
    tiers: Sequence[BidTokenTier],
    default: Optional[int] = None,
) -> int:
    """
    Token cost of bidding on a project with the given budget.

    Pure function of its arguments. Anything it cannot price (no tiers, no
    matching tier, a negative or non-numeric budget, a negative configured
    cost) costs ``default`` tokens, never less than one.
    """
    fallback = max(1, default if default is not None else settings.DEFAULT_BID_TOKEN_COST)

    if not _is_valid_budget(budget):
        return fallback

    for tier in sorted((t for t in tiers if t.is_active), key=lambda t: t.min_budget):
        if _tier_matches(tier, budget):
            if tier.tokens_required is None or tier.tokens_required < 0:
                return fallback
            return int(tier.tokens_required)

    return fallback


def load_active_tiers(session: Session) -> List[BidTokenTier]:
    """Active tiers from the store; an empty list if the store is unavailable."""
    try:
        statement = (
            select(BidTokenTier)
            .where(BidTokenTier.is_active == True)  # noqa: E712
            .order_by(BidTokenTier.min_budget)
        )
        return list(session.exec(statement).all())
    except SQLAlchemyError as e:
        logger.error(f"❌ Could not load bid token tiers, using default cost: {e}")
        session.rollback()
        return []


def tokens_required_for_project(session: Session, project: Project) -> int:
    return tokens_required_for_budget(project.budget, load_active_tiers(session))


def create_default_token_tiers(session: Session) -> List[BidTokenTier]:
    """Insert the default tiers when the table is empty."""
    existing = session.exec(select(BidTokenTier)).first()
    if existing:
        return load_active_tiers(session)

    tiers = [BidTokenTier(**data) for data in DEFAULT_BID_TOKEN_TIERS]
    for tier in tiers:
        session.add(tier)
    session.commit()
    for tier in tiers:
        session.refresh(tier)

    logger.info(f"✅ Created {len(tiers)} default bid token tiers")
    return tiers
