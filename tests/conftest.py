import hashlib
import hmac
import json
import os
import time

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-carebid")
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import models.models  # noqa: F401
from core.database import get_session
from core.security import create_token_for_user, hash_password
from main import app
from models.models import Project, ProjectStatus, TokenPlan, PricingPlan, User, UserRole
from services.unread_counts import unread_cache
from services.token_pricing import create_default_token_tiers

WEBHOOK_SECRET = "whsec_test_secret"

# One hash for every fixture user keeps the suite fast
_PASSWORD_HASH = hash_password("password123")


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_unread_cache():
    unread_cache.clear()
    yield
    unread_cache.clear()


@pytest.fixture
def tiers(session):
    return create_default_token_tiers(session)


@pytest.fixture
def catalog(session, tiers):
    session.add(TokenPlan(slug="starter", name="Starter", tokens=50, price=250.0))
    session.add(TokenPlan(slug="growth", name="Growth", tokens=100, price=500.0, is_popular=True))
    session.add(PricingPlan(slug="buyer-pro", name="Buyer Pro", price_cents=999))
    session.add(PricingPlan(slug="seller-plus", name="Seller Plus", price_cents=1999))
    session.commit()


# ============================================================
# Factories
# ============================================================
@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make_user(role: UserRole = UserRole.SELLER, bid_tokens: int = 0, full_name: str = None) -> User:
        counter["n"] += 1
        user = User(
            full_name=full_name or f"{role.value.title()} {counter['n']}",
            email=f"{role.value}{counter['n']}@carebid.co.uk",
            password_hash=_PASSWORD_HASH,
            role=role.value,
            bid_tokens=bid_tokens,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def buyer(make_user):
    return make_user(UserRole.BUYER, full_name="Care Home Ltd")


@pytest.fixture
def seller(make_user):
    return make_user(UserRole.SELLER, bid_tokens=10, full_name="Jane Consultant")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def make_project(session):
    def _make_project(owner: User, budget: float = 500.0, status: ProjectStatus = ProjectStatus.OPEN) -> Project:
        project = Project(
            owner_id=owner.id,
            title="CQC inspection readiness review",
            description="Mock inspection and action plan for a 40-bed home.",
            budget=budget,
            status=status.value,
        )
        session.add(project)
        session.commit()
        session.refresh(project)
        return project

    return _make_project


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token_for_user(user)}"}


# ============================================================
# Stripe events
# ============================================================
def checkout_event(metadata: dict, checkout_id: str = "cs_test_1", event_id: str = "evt_test_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": checkout_id,
                "object": "checkout.session",
                "payment_intent": "pi_test_1",
                "metadata": metadata,
            }
        },
    }


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def post_webhook(client, event: dict, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    return client.post(
        "/payments/webhook",
        content=payload,
        headers={"stripe-signature": sign_payload(payload, secret), "content-type": "application/json"},
    )
