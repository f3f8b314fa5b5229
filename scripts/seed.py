# scripts/seed.py

import os
import sys
import argparse
from datetime import datetime

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import settings
from core.database import engine, create_db_and_tables
from core.security import hash_password
from models.models import PricingPlan, TokenPlan, User, UserRole
from services.token_pricing import create_default_token_tiers

# ✅ Load environment variables
load_dotenv()


TOKEN_PLANS = [
    {"slug": "starter", "name": "Starter", "tokens": 50, "description": "Enough for a few weeks of bidding."},
    {"slug": "growth", "name": "Growth", "tokens": 100, "description": "For sellers bidding every day.", "is_popular": True},
    {"slug": "pro", "name": "Pro", "tokens": 250, "description": "Best value for busy practices."},
]

PRICING_PLANS = [
    {"slug": "buyer-pro", "name": "Buyer Pro", "price_cents": 999, "billing_interval": "month",
     "description": "Priority support and advanced project tools for buyers."},
    {"slug": "seller-plus", "name": "Seller Plus", "price_cents": 1999, "billing_interval": "month",
     "duration_days": settings.SELLER_PLUS_DURATION_DAYS,
     "description": "Featured listings for 30 days."},
]

DEMO_ACCOUNTS = [
    {"full_name": "Demo Buyer", "email": "buyer@demo.carebid.co.uk", "password": "buyer123", "role": UserRole.BUYER},
    {"full_name": "Demo Seller", "email": "seller@demo.carebid.co.uk", "password": "seller123", "role": UserRole.SELLER,
     "bid_tokens": 10},
    {"full_name": "Admin User", "email": "admin@demo.carebid.co.uk", "password": "admin123", "role": UserRole.ADMIN},
]


def seed_catalog(session: Session) -> None:
    """Bid-token tiers, token packs and subscription plans. Safe to re-run."""
    create_default_token_tiers(session)

    for data in TOKEN_PLANS:
        if session.exec(select(TokenPlan).where(TokenPlan.slug == data["slug"])).first():
            continue
        session.add(TokenPlan(price=float(data["tokens"] * settings.TOKEN_PRICE_GBP), **data))
        print(f"✅ Added token plan {data['slug']}")

    for data in PRICING_PLANS:
        if session.exec(select(PricingPlan).where(PricingPlan.slug == data["slug"])).first():
            continue
        session.add(PricingPlan(**data))
        print(f"✅ Added pricing plan {data['slug']}")

    session.commit()


def seed_account(session: Session, full_name: str, email: str, password: str, role: UserRole, bid_tokens: int = 0) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user

    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        role=role.value,
        is_active=True,
        bid_tokens=bid_tokens,
        created_at=datetime.utcnow(),
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    print(f"✅ Added {role.value} {email}")
    return user


def seed_dev_data():
    """Seed development database with the catalog and demo accounts."""
    print("🌱 Seeding development data...")
    create_db_and_tables()

    with Session(engine) as session:
        seed_catalog(session)
        for account in DEMO_ACCOUNTS:
            seed_account(session, **account)

    print("🌱 Development data seeding complete.")


def seed_staging_data():
    """Seed staging database with the catalog and an admin only."""
    print("🌱 Seeding staging data...")
    create_db_and_tables()

    with Session(engine) as session:
        seed_catalog(session)
        seed_account(
            session,
            full_name="Staging Admin",
            email="staging-admin@carebid.co.uk",
            password=os.getenv("STAGING_ADMIN_PASSWORD", "staging123"),
            role=UserRole.ADMIN,
        )

    print("🌱 Staging data seeding complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the CareBid database.")
    parser.add_argument(
        "--env",
        choices=["dev", "staging"],
        default="dev",
        help="Select environment to seed (dev or staging)",
    )
    args = parser.parse_args()

    if args.env == "dev":
        seed_dev_data()
    elif args.env == "staging":
        seed_staging_data()
