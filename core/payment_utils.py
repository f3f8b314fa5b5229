# core/payment_utils.py
import stripe

from core.config import settings


def configure_stripe() -> None:
    """Point the Stripe SDK at the configured secret key."""
    stripe.api_key = settings.STRIPE_SECRET_KEY


def to_pence(amount_gbp: float) -> int:
    return int(round(amount_gbp * 100))


def token_pack_amount_gbp(tokens: int) -> int:
    """Price of a token pack in whole pounds."""
    return tokens * settings.TOKEN_PRICE_GBP
