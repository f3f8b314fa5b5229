# ================================================================
# services/entitlement_service.py: Buyer Pro / Seller Plus grants
# ================================================================
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy import update
from sqlmodel import Session, select

from models.models import (
    Entitlement,
    EntitlementStatus,
    EntitlementType,
    Service,
)

logger = logging.getLogger(__name__)


def get_active_row(session: Session, account_id: int, entitlement_type: str) -> Optional[Entitlement]:
    """The row with status=active, whether or not it has lapsed."""
    statement = select(Entitlement).where(
        Entitlement.account_id == account_id,
        Entitlement.entitlement_type == entitlement_type,
        Entitlement.status == EntitlementStatus.ACTIVE.value,
    )
    return session.exec(statement).first()


def get_active_entitlement(
    session: Session,
    account_id: int,
    entitlement_type: str,
    now: Optional[datetime] = None,
) -> Optional[Entitlement]:
    """The active row only if it has not lapsed."""
    row = get_active_row(session, account_id, entitlement_type)
    if row and row.is_current(now):
        return row
    return None


def is_buyer_pro(session: Session, account_id: int) -> bool:
    return get_active_entitlement(session, account_id, EntitlementType.BUYER_PRO.value) is not None


def is_seller_plus(session: Session, account_id: int) -> bool:
    return get_active_entitlement(session, account_id, EntitlementType.SELLER_PLUS.value) is not None


def mark_services_featured(session: Session, seller_id: int, featured: bool = True) -> int:
    """Flip is_featured on all of a seller's active listings. Commits."""
    result = session.exec(
        update(Service)
        .where(Service.seller_id == seller_id, Service.is_active == True)  # noqa: E712
        .values(is_featured=featured)
    )
    session.commit()
    logger.info(f"⭐ Set is_featured={featured} on {result.rowcount} services for seller {seller_id}")
    return result.rowcount


def expire_lapsed_entitlements(session: Session, now: Optional[datetime] = None) -> int:
    """
    Mark active entitlements whose expiry has passed as expired.

    Sellers who lose Seller Plus also lose their featured listings.
    """
    now = now or datetime.utcnow()
    statement = select(Entitlement).where(
        Entitlement.status == EntitlementStatus.ACTIVE.value,
        Entitlement.expires_at != None,  # noqa: E711
        Entitlement.expires_at <= now,
    )
    lapsed = session.exec(statement).all()

    lapsed_sellers = set()
    for entitlement in lapsed:
        logger.info(
            f"🔄 Auto-expiring {entitlement.entitlement_type} entitlement {entitlement.id} "
            f"for account {entitlement.account_id}"
        )
        entitlement.status = EntitlementStatus.EXPIRED.value
        entitlement.updated_at = now
        session.add(entitlement)
        if entitlement.entitlement_type == EntitlementType.SELLER_PLUS.value:
            lapsed_sellers.add(entitlement.account_id)

    for seller_id in lapsed_sellers:
        session.exec(
            update(Service)
            .where(Service.seller_id == seller_id)
            .values(is_featured=False)
        )

    if lapsed:
        session.commit()
        logger.info(f"✅ Auto-expired {len(lapsed)} entitlements")

    return len(lapsed)
