from sqlmodel import select

from models.models import BidTokenTier, PricingPlan, TokenPlan, User, UserRole
from scripts.seed import DEMO_ACCOUNTS, seed_account, seed_catalog


def test_seed_catalog_is_idempotent(session):
    seed_catalog(session)
    seed_catalog(session)

    plans = {p.slug: p for p in session.exec(select(TokenPlan)).all()}
    assert set(plans) == {"starter", "growth", "pro"}
    assert plans["starter"].tokens == 50
    assert plans["starter"].price == 250.0
    assert {p.slug for p in session.exec(select(PricingPlan)).all()} == {"buyer-pro", "seller-plus"}
    assert len(session.exec(select(BidTokenTier)).all()) == 4


def test_seed_account_is_idempotent(session):
    seller_data = next(a for a in DEMO_ACCOUNTS if a["role"] == UserRole.SELLER)
    first = seed_account(session, **seller_data)
    second = seed_account(session, **seller_data)

    assert first.id == second.id
    assert first.bid_tokens == 10
    assert len(session.exec(select(User)).all()) == 1
