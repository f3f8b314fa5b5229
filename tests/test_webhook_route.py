import json
import time

import stripe
from sqlalchemy import func
from sqlmodel import select

from core.config import settings
from models.models import Entitlement, TokenLedgerEntry, TokenPurchase, WebhookEvent
from services.ledger import get_balance

from conftest import WEBHOOK_SECRET, checkout_event, post_webhook, sign_payload


def starter_event(seller, **kwargs):
    return checkout_event(
        {"type": "tokens", "user_id": str(seller.id), "plan_slug": "starter", "tokens": "50", "amount_gbp": "250"},
        **kwargs,
    )


def test_valid_event_is_applied(client, session, catalog, seller):
    response = post_webhook(client, starter_event(seller))

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert get_balance(session, seller.id) == 60


def test_replayed_event_is_acknowledged_once(client, session, catalog, seller):
    event = starter_event(seller)
    assert post_webhook(client, event).status_code == 200
    assert post_webhook(client, event).status_code == 200

    assert get_balance(session, seller.id) == 60
    assert session.exec(select(func.count()).select_from(TokenPurchase)).one() == 1


def test_invalid_signature_changes_nothing(client, session, catalog, seller, buyer):
    response = post_webhook(client, starter_event(seller), secret="whsec_attacker")

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}
    assert get_balance(session, seller.id) == 10
    assert session.exec(select(TokenPurchase)).all() == []
    assert session.exec(select(TokenLedgerEntry)).all() == []
    assert session.exec(select(Entitlement)).all() == []
    assert session.exec(select(WebhookEvent)).all() == []


def test_tampered_body_is_rejected(client, session, catalog, seller):
    payload = json.dumps(starter_event(seller))
    header = sign_payload(payload)
    tampered = payload.replace('"50"', '"5000"')

    response = client.post("/payments/webhook", content=tampered, headers={"stripe-signature": header})

    assert response.status_code == 400
    assert get_balance(session, seller.id) == 10


def test_stale_timestamp_is_rejected(client, session, catalog, seller):
    payload = json.dumps(starter_event(seller))
    header = sign_payload(payload, timestamp=int(time.time()) - 3600)

    response = client.post("/payments/webhook", content=payload, headers={"stripe-signature": header})

    assert response.status_code == 400
    assert get_balance(session, seller.id) == 10


def test_missing_signature_header(client, session, seller):
    response = client.post("/payments/webhook", content=json.dumps(starter_event(seller)))
    assert response.status_code == 400
    assert response.json() == {"error": "Missing stripe-signature header"}


def test_malformed_payload(client):
    payload = "this is not json"
    response = client.post("/payments/webhook", content=payload, headers={"stripe-signature": sign_payload(payload)})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid payload"}


def test_missing_webhook_secret_is_server_error(client, seller, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
    response = post_webhook(client, starter_event(seller))
    assert response.status_code == 500


def test_processing_failure_asks_stripe_to_retry(client, session, catalog, seller, monkeypatch):
    def explode(self, event):
        raise RuntimeError("boom")

    monkeypatch.setattr("routes.payment.PaymentEventReconciler.reconcile", explode)
    response = post_webhook(client, starter_event(seller))

    assert response.status_code == 500
    assert get_balance(session, seller.id) == 10


def test_unhandled_event_type_is_acknowledged(client):
    event = {"id": "evt_sub", "object": "event", "type": "customer.subscription.updated", "data": {"object": {}}}
    response = post_webhook(client, event)
    assert response.status_code == 200


def test_event_is_verified_through_stripe_sdk(client, session, catalog, seller, monkeypatch):
    calls = []
    construct_event = stripe.Webhook.construct_event

    def recording_construct_event(**kwargs):
        calls.append(kwargs)
        return construct_event(**kwargs)

    monkeypatch.setattr(stripe.Webhook, "construct_event", recording_construct_event)
    response = post_webhook(client, starter_event(seller))

    assert response.status_code == 200
    assert [c["secret"] for c in calls] == [WEBHOOK_SECRET]
    assert get_balance(session, seller.id) == 60
    row = session.exec(select(WebhookEvent)).one()
    assert json.loads(row.payload)["data"]["object"]["metadata"]["plan_slug"] == "starter"


def test_signed_non_object_payload_is_rejected(client, session):
    payload = "[1, 2, 3]"
    response = client.post("/payments/webhook", content=payload, headers={"stripe-signature": sign_payload(payload)})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid payload"}
    assert session.exec(select(WebhookEvent)).all() == []
