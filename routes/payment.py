# routes/payment.py
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from core.config import settings
from core.database import get_session
from core.security import get_current_user
from models.models import EntitlementType, User
from schemas.payment_schema import CheckoutSessionRequest, CheckoutSessionResponse, EntitlementsRead
from services.checkout_service import create_checkout_session
from services.entitlement_service import get_active_entitlement
from services.payment_service import PaymentEventReconciler

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger(__name__)


# ==================================================================
#  💳 Checkout
# ==================================================================
@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout(
    payload: CheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create a Stripe Checkout session for tokens, Buyer Pro or Seller Plus."""
    url, session_id = create_checkout_session(session, current_user, payload.type.value, payload.plan_slug)
    return CheckoutSessionResponse(url=url, session_id=session_id)


@router.get("/entitlements", response_model=EntitlementsRead)
def get_entitlements(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    buyer_pro = get_active_entitlement(session, current_user.id, EntitlementType.BUYER_PRO.value)
    seller_plus = get_active_entitlement(session, current_user.id, EntitlementType.SELLER_PLUS.value)
    return EntitlementsRead(
        buyer_pro=buyer_pro is not None,
        seller_plus=seller_plus is not None,
        seller_plus_expires_at=seller_plus.expires_at if seller_plus else None,
    )


# ==================================================================
#  🔔 Stripe webhook
# ==================================================================
@router.post("/webhook")
async def stripe_webhook(request: Request, session: Session = Depends(get_session)):
    """Verify and reconcile a Stripe event. Non-2xx responses make Stripe retry."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    webhook_secret = settings.STRIPE_WEBHOOK_SECRET

    if not webhook_secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook secret not configured"}
        )

    if not sig_header:
        logger.warning("❌ Missing stripe-signature header")
        return JSONResponse(
            status_code=400,
            content={"error": "Missing stripe-signature header"}
        )

    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=webhook_secret
        ).to_dict()
    except ValueError as e:
        # Invalid payload (also covers malformed JSON and bad UTF-8)
        logger.warning(f"❌ Invalid payload: {e}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid payload"}
        )
    except stripe.SignatureVerificationError as e:
        logger.warning(f"❌ Invalid signature: {e}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid signature"}
        )
    except Exception as e:
        logger.warning(f"❌ Webhook error: {e}")
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid payload"}
        )

    logger.info(f"✅ Webhook received: {event.get('type')} ({event.get('id')})")

    try:
        PaymentEventReconciler(session).reconcile(event)
    except Exception as e:
        logger.exception(f"❌ Error processing webhook event {event.get('id')}: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Error processing event"}
        )

    return {"received": True}
