# ================================================================
# services/checkout_service.py: Stripe Checkout session creation
# ================================================================
from typing import Any, Dict, Optional, Tuple
import logging

import stripe
from sqlmodel import Session, select

from core.config import settings
from core.errors import CheckoutRejected, PaymentProviderError, PermissionDenied, ValidationFailed
from core.payment_utils import configure_stripe, to_pence, token_pack_amount_gbp
from models.models import PricingPlan, TokenPlan, User, UserRole
from services.payment_service import PurchaseType

logger = logging.getLogger(__name__)

BUYER_PRO_SLUG = "buyer-pro"
SELLER_PLUS_SLUG = "seller-plus"


def _active_token_plan(session: Session, plan_slug: Optional[str]) -> TokenPlan:
    if not plan_slug:
        raise ValidationFailed("A token plan is required.", context={"field": "plan_slug"})
    plan = session.exec(
        select(TokenPlan).where(TokenPlan.slug == plan_slug, TokenPlan.is_active == True)  # noqa: E712
    ).first()
    if not plan:
        raise ValidationFailed("Token plan not found", context={"plan_slug": plan_slug})
    return plan


def _active_pricing_plan(session: Session, plan_slug: str) -> PricingPlan:
    plan = session.exec(
        select(PricingPlan).where(PricingPlan.slug == plan_slug, PricingPlan.is_active == True)  # noqa: E712
    ).first()
    if not plan:
        raise ValidationFailed("Plan not found", context={"plan_slug": plan_slug})
    return plan


def _require_role(user: User, role: UserRole, message: str) -> None:
    if user.role != role.value:
        raise PermissionDenied(message)


def build_checkout_params(session: Session, user: User, purchase_type: str, plan_slug: Optional[str] = None) -> Dict[str, Any]:
    """Keyword arguments for ``stripe.checkout.Session.create``."""
    currency = settings.CURRENCY
    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "customer_email": user.email,
        "client_reference_id": str(user.id),
        "success_url": settings.checkout_success_url(purchase_type),
        "cancel_url": settings.checkout_cancel_url(purchase_type),
    }

    if purchase_type == PurchaseType.TOKENS.value:
        _require_role(user, UserRole.SELLER, "Only sellers can buy bid tokens.")
        plan = _active_token_plan(session, plan_slug)
        amount_gbp = token_pack_amount_gbp(plan.tokens)
        params.update(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency,
                    "product_data": {
                        "name": f"{plan.name} - {plan.tokens} bid tokens",
                        "description": plan.description or f"{plan.tokens} bid tokens",
                    },
                    "unit_amount": to_pence(amount_gbp),
                },
                "quantity": 1,
            }],
            metadata={
                "type": purchase_type,
                "user_id": str(user.id),
                "plan_id": str(plan.id),
                "plan_slug": plan.slug,
                "tokens": str(plan.tokens),
                "amount_gbp": str(amount_gbp),
            },
        )
        return params

    if purchase_type == PurchaseType.BUYER_PRO.value:
        _require_role(user, UserRole.BUYER, "Buyer Pro is only available to buyers.")
        plan = _active_pricing_plan(session, BUYER_PRO_SLUG)
        params.update(
            mode="subscription",
            line_items=[{
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": plan.name},
                    "unit_amount": plan.price_cents,
                    "recurring": {"interval": plan.billing_interval or "month"},
                },
                "quantity": 1,
            }],
            metadata={
                "type": purchase_type,
                "user_id": str(user.id),
                "plan_id": str(plan.id),
                "plan_slug": plan.slug,
            },
        )
        return params

    if purchase_type == PurchaseType.SELLER_PLUS.value:
        _require_role(user, UserRole.SELLER, "Seller Plus is only available to sellers.")
        plan = _active_pricing_plan(session, plan_slug or SELLER_PLUS_SLUG)
        params.update(
            mode="subscription",
            line_items=[{
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": plan.name},
                    "unit_amount": plan.price_cents,
                    "recurring": {"interval": "month"},
                },
                "quantity": 1,
            }],
            metadata={
                "type": purchase_type,
                "user_id": str(user.id),
                "plan_slug": plan.slug,
            },
        )
        return params

    raise ValidationFailed("Invalid checkout type", context={"field": "type"})


def create_checkout_session(
    session: Session,
    user: User,
    purchase_type: str,
    plan_slug: Optional[str] = None,
) -> Tuple[str, str]:
    """Create a Stripe Checkout session. Returns ``(url, session_id)``."""
    params = build_checkout_params(session, user, purchase_type, plan_slug)

    configure_stripe()
    if not stripe.api_key:
        logger.error("❌ STRIPE_SECRET_KEY is not configured")
        raise PaymentProviderError("Payment service is not configured.")

    try:
        checkout_session = stripe.checkout.Session.create(**params)
    except stripe.InvalidRequestError as e:
        logger.error(f"❌ Stripe rejected checkout for user {user.id}: {e}")
        raise CheckoutRejected(f"Payment configuration error: {e.user_message or str(e)}")
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe error creating checkout for user {user.id}: {e}")
        raise PaymentProviderError("Payment service error. Please try again.")

    logger.info(f"💳 Checkout session {checkout_session.id} created for user {user.id} ({purchase_type})")
    return checkout_session.url, checkout_session.id
