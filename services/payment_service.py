# ================================================================
# services/payment_service.py: Stripe checkout event reconciliation
# ================================================================
"""
Turns one verified ``checkout.session.completed`` event into exactly one
durable state change: a token top-up, a Buyer Pro grant, or a Seller Plus
grant or renewal.

Stripe delivers at least once. Each effect is guarded twice: the event id is
logged in ``webhook_event`` in the same transaction as the effect, and each
effect has its own store-level key (the purchase's checkout session id, the
one-active-entitlement index). A replay that hits either guard reports
``already_applied`` and writes nothing.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple
import json
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from core.config import settings
from core.payment_utils import token_pack_amount_gbp
from models.models import (
    Entitlement,
    EntitlementStatus,
    EntitlementType,
    LedgerReason,
    PricingPlan,
    PurchaseStatus,
    TokenPlan,
    TokenPurchase,
    User,
    WebhookEvent,
)
from services.entitlement_service import get_active_row, mark_services_featured
from services.ledger import credit_tokens

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class PurchaseType(str, Enum):
    TOKENS = "tokens"
    BUYER_PRO = "buyer_pro"
    SELLER_PLUS = "seller_plus"


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    IGNORED = "ignored"


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(str(value))
    except (TypeError, ValueError):
        return None


class PaymentEventReconciler:
    """Applies a single Stripe event. One instance per delivery."""

    def __init__(
        self,
        session: Session,
        now: Optional[datetime] = None,
        feature_services: Callable[[Session, int], int] = mark_services_featured,
    ):
        self.session = session
        self.now = now or datetime.utcnow()
        self.feature_services = feature_services

    # ------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------
    def reconcile(self, event: Dict[str, Any]) -> ReconcileOutcome:
        event_id = event.get("id")
        event_type = event.get("type")

        if event_id and self._event_processed(event_id):
            logger.info(f"ℹ️ Stripe event {event_id} already processed, skipping")
            return ReconcileOutcome.ALREADY_APPLIED

        if event_type != CHECKOUT_COMPLETED:
            logger.info(f"ℹ️ Unhandled event type: {event_type}")
            return ReconcileOutcome.IGNORED

        data_object = (event.get("data") or {}).get("object") or {}
        metadata = data_object.get("metadata") or {}
        purchase_type = metadata.get("type")
        account_id = _to_int(metadata.get("user_id"))

        if not purchase_type or account_id is None:
            logger.info(f"ℹ️ Event {event_id} has no purchase type or user id, nothing to do")
            return self._finish(event, ReconcileOutcome.IGNORED, account_id)

        handler = self._handlers().get(purchase_type)
        if handler is None:
            logger.warning(f"⚠️ Event {event_id} has unknown purchase type {purchase_type!r}")
            return self._finish(event, ReconcileOutcome.IGNORED, account_id)

        try:
            if self.session.get(User, account_id) is None:
                logger.warning(f"⚠️ Event {event_id} targets unknown account {account_id}")
                return self._finish(event, ReconcileOutcome.IGNORED, account_id)

            outcome, after_commit = handler(account_id, metadata, data_object)
            self._record_event(event, outcome, account_id)
            self.session.commit()
        except IntegrityError as e:
            # A concurrent delivery of the same payment won the race
            self.session.rollback()
            if not self._effect_present(purchase_type, account_id, data_object):
                self._record_failure(event, e)
                raise
            logger.info(f"ℹ️ Concurrent delivery of event {event_id} already applied")
            outcome, after_commit = ReconcileOutcome.ALREADY_APPLIED, self._after_commit_for(purchase_type, account_id)
            self._finish(event, outcome, account_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"❌ Store error while reconciling event {event_id}: {e}")
            self._record_failure(event, e)
            raise
        except Exception as e:
            self.session.rollback()
            logger.error(f"❌ Failed to reconcile event {event_id}: {e}")
            self._record_failure(event, e)
            raise

        logger.info(f"✅ Event {event_id} ({purchase_type}) for account {account_id}: {outcome.value}")
        if after_commit:
            after_commit()
        return outcome

    def _handlers(self) -> Dict[str, Callable]:
        return {
            PurchaseType.TOKENS.value: self._apply_tokens,
            PurchaseType.BUYER_PRO.value: self._apply_buyer_pro,
            PurchaseType.SELLER_PLUS.value: self._apply_seller_plus,
        }

    # ------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------
    def _apply_tokens(self, account_id: int, metadata: Dict, data_object: Dict) -> Tuple[ReconcileOutcome, None]:
        checkout_id = data_object.get("id")
        plan_slug = metadata.get("plan_slug")
        if not checkout_id or not plan_slug:
            return ReconcileOutcome.IGNORED, None

        if self._purchase_exists(checkout_id):
            return ReconcileOutcome.ALREADY_APPLIED, None

        plan = self.session.exec(select(TokenPlan).where(TokenPlan.slug == plan_slug)).first()
        tokens = plan.tokens if plan else _to_int(metadata.get("tokens"))
        if not tokens or tokens <= 0:
            logger.warning(f"⚠️ Token plan {plan_slug!r} could not be resolved to a token count")
            return ReconcileOutcome.IGNORED, None

        amount = _to_float(metadata.get("amount_gbp"))
        if amount is None:
            amount = float(token_pack_amount_gbp(tokens))

        # Audit row first: its unique key rejects a concurrent duplicate
        purchase = TokenPurchase(
            seller_id=account_id,
            plan_id=plan.id if plan else None,
            tokens=tokens,
            amount=amount,
            currency="GBP",
            status=PurchaseStatus.COMPLETED.value,
            stripe_session_id=checkout_id,
            stripe_payment_intent=data_object.get("payment_intent"),
        )
        self.session.add(purchase)
        self.session.flush()

        credit_tokens(
            self.session,
            account_id,
            tokens,
            reason=LedgerReason.PURCHASE.value,
            reference=f"stripe:{checkout_id}",
        )
        return ReconcileOutcome.APPLIED, None

    def _apply_buyer_pro(self, account_id: int, metadata: Dict, data_object: Dict) -> Tuple[ReconcileOutcome, None]:
        if get_active_row(self.session, account_id, EntitlementType.BUYER_PRO.value):
            return ReconcileOutcome.ALREADY_APPLIED, None

        plan_id = _to_int(metadata.get("plan_id"))
        if plan_id is not None and self.session.get(PricingPlan, plan_id) is None:
            plan_id = None

        self.session.add(
            Entitlement(
                account_id=account_id,
                entitlement_type=EntitlementType.BUYER_PRO.value,
                status=EntitlementStatus.ACTIVE.value,
                plan_id=plan_id,
                plan_slug=metadata.get("plan_slug") or "buyer-pro",
                starts_at=self.now,
                expires_at=None,
                stripe_session_id=data_object.get("id"),
            )
        )
        self.session.flush()
        return ReconcileOutcome.APPLIED, None

    def _apply_seller_plus(self, account_id: int, metadata: Dict, data_object: Dict) -> Tuple[ReconcileOutcome, Callable]:
        after_commit = self._after_commit_for(PurchaseType.SELLER_PLUS.value, account_id)
        existing = get_active_row(self.session, account_id, EntitlementType.SELLER_PLUS.value)

        if existing and existing.is_current(self.now):
            return ReconcileOutcome.ALREADY_APPLIED, after_commit

        if existing:
            # Lapsed: supersede it rather than stack a second active row
            existing.status = EntitlementStatus.EXPIRED.value
            existing.updated_at = self.now
            self.session.add(existing)
            self.session.flush()

        self.session.add(
            Entitlement(
                account_id=account_id,
                entitlement_type=EntitlementType.SELLER_PLUS.value,
                status=EntitlementStatus.ACTIVE.value,
                plan_slug=metadata.get("plan_slug") or "seller-plus",
                starts_at=self.now,
                expires_at=self.now + timedelta(days=settings.SELLER_PLUS_DURATION_DAYS),
                stripe_session_id=data_object.get("id"),
            )
        )
        self.session.flush()
        return ReconcileOutcome.APPLIED, after_commit

    def _after_commit_for(self, purchase_type: str, account_id: int) -> Optional[Callable[[], None]]:
        if purchase_type != PurchaseType.SELLER_PLUS.value:
            return None

        def feature_listings() -> None:
            # Best effort: the payment is already acknowledged
            try:
                self.feature_services(self.session, account_id)
            except Exception as e:
                self.session.rollback()
                logger.error(f"❌ Could not mark services featured for seller {account_id}: {e}")

        return feature_listings

    # ------------------------------------------------------------
    # Idempotency checks
    # ------------------------------------------------------------
    def _event_processed(self, event_id: str) -> bool:
        row = self.session.exec(
            select(WebhookEvent).where(WebhookEvent.stripe_event_id == event_id)
        ).first()
        return bool(row and row.processed)

    def _purchase_exists(self, checkout_id: str) -> bool:
        row = self.session.exec(
            select(TokenPurchase.id).where(TokenPurchase.stripe_session_id == checkout_id)
        ).first()
        return row is not None

    def _effect_present(self, purchase_type: str, account_id: int, data_object: Dict) -> bool:
        if purchase_type == PurchaseType.TOKENS.value:
            return bool(data_object.get("id")) and self._purchase_exists(data_object["id"])
        if purchase_type == PurchaseType.BUYER_PRO.value:
            return get_active_row(self.session, account_id, EntitlementType.BUYER_PRO.value) is not None
        if purchase_type == PurchaseType.SELLER_PLUS.value:
            row = get_active_row(self.session, account_id, EntitlementType.SELLER_PLUS.value)
            return bool(row and row.is_current(self.now))
        return False

    # ------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------
    def _record_event(
        self,
        event: Dict[str, Any],
        outcome: ReconcileOutcome,
        account_id: Optional[int],
        error: Optional[str] = None,
    ) -> None:
        event_id = event.get("id")
        if not event_id:
            return

        row = self.session.exec(
            select(WebhookEvent).where(WebhookEvent.stripe_event_id == event_id)
        ).first()
        if row is None:
            row = WebhookEvent(
                stripe_event_id=event_id,
                event_type=event.get("type") or "unknown",
                payload=json.dumps(event, default=str),
            )
        row.processed = error is None
        row.outcome = outcome.value if error is None else None
        row.processing_error = error
        row.account_id = account_id
        row.updated_at = datetime.utcnow()
        self.session.add(row)

    def _finish(self, event: Dict[str, Any], outcome: ReconcileOutcome, account_id: Optional[int]) -> ReconcileOutcome:
        """Log a no-op outcome. A failure here only costs the log row."""
        try:
            self._record_event(event, outcome, account_id)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning(f"⚠️ Could not log webhook event {event.get('id')}: {e}")
        return outcome

    def _record_failure(self, event: Dict[str, Any], error: Exception) -> None:
        try:
            self._record_event(event, ReconcileOutcome.IGNORED, None, error=str(error))
            self.session.commit()
        except SQLAlchemyError as log_error:
            self.session.rollback()
            logger.warning(f"⚠️ Could not log failure for webhook event {event.get('id')}: {log_error}")
