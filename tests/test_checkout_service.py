from types import SimpleNamespace

import pytest
import stripe

from core.errors import CheckoutRejected, PaymentProviderError, PermissionDenied, ValidationFailed
from services.checkout_service import build_checkout_params, create_checkout_session

from conftest import auth_headers


@pytest.fixture
def stripe_calls(monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="cs_test_created", url="https://checkout.stripe.com/c/pay/cs_test_created")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


def test_token_checkout_params(session, catalog, seller):
    params = build_checkout_params(session, seller, "tokens", "starter")

    assert params["mode"] == "payment"
    [item] = params["line_items"]
    assert item["price_data"]["unit_amount"] == 50 * 5 * 100
    assert item["price_data"]["currency"] == "gbp"
    assert params["metadata"] == {
        "type": "tokens",
        "user_id": str(seller.id),
        "plan_id": params["metadata"]["plan_id"],
        "plan_slug": "starter",
        "tokens": "50",
        "amount_gbp": "250",
    }
    assert params["success_url"].endswith("/seller/tokens?status=success")
    assert params["cancel_url"].endswith("/seller/tokens?status=cancelled")


def test_buyer_pro_params(session, catalog, buyer):
    params = build_checkout_params(session, buyer, "buyer_pro")

    assert params["mode"] == "subscription"
    price_data = params["line_items"][0]["price_data"]
    assert price_data["unit_amount"] == 999
    assert price_data["recurring"] == {"interval": "month"}
    assert params["metadata"]["type"] == "buyer_pro"
    assert params["metadata"]["plan_slug"] == "buyer-pro"
    assert params["success_url"].endswith("/plans?status=success")


def test_seller_plus_params(session, catalog, seller):
    params = build_checkout_params(session, seller, "seller_plus")

    assert params["mode"] == "subscription"
    assert params["metadata"] == {"type": "seller_plus", "user_id": str(seller.id), "plan_slug": "seller-plus"}
    assert params["success_url"].endswith("/seller/dashboard?status=seller_plus_success")


def test_tokens_need_a_plan(session, catalog, seller):
    with pytest.raises(ValidationFailed):
        build_checkout_params(session, seller, "tokens")
    with pytest.raises(ValidationFailed):
        build_checkout_params(session, seller, "tokens", "does-not-exist")


def test_roles_are_enforced(session, catalog, buyer, seller):
    with pytest.raises(PermissionDenied):
        build_checkout_params(session, buyer, "tokens", "starter")
    with pytest.raises(PermissionDenied):
        build_checkout_params(session, seller, "buyer_pro")
    with pytest.raises(PermissionDenied):
        build_checkout_params(session, buyer, "seller_plus")


def test_unknown_type(session, catalog, seller):
    with pytest.raises(ValidationFailed):
        build_checkout_params(session, seller, "gift_card")


def test_create_returns_url_and_id(session, catalog, seller, stripe_calls):
    url, session_id = create_checkout_session(session, seller, "tokens", "growth")

    assert session_id == "cs_test_created"
    assert url.startswith("https://checkout.stripe.com/")
    assert stripe_calls[0]["metadata"]["tokens"] == "100"


def test_stripe_invalid_request_is_rejected(session, catalog, seller, monkeypatch):
    def fake_create(**params):
        raise stripe.InvalidRequestError("No such price", param="price")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    with pytest.raises(CheckoutRejected) as exc_info:
        create_checkout_session(session, seller, "tokens", "starter")
    assert exc_info.value.status_code == 400


def test_stripe_outage_is_bad_gateway(session, catalog, seller, monkeypatch):
    def fake_create(**params):
        raise stripe.APIConnectionError("connection reset")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    with pytest.raises(PaymentProviderError) as exc_info:
        create_checkout_session(session, seller, "tokens", "starter")
    assert exc_info.value.status_code == 502


# ============================================================
# Route
# ============================================================
def test_route_takes_user_from_token(client, catalog, seller, stripe_calls):
    response = client.post(
        "/payments/create-checkout-session",
        json={"type": "tokens", "plan_slug": "starter", "user_id": 999},
        headers=auth_headers(seller),
    )

    assert response.status_code == 200
    assert response.json() == {
        "url": "https://checkout.stripe.com/c/pay/cs_test_created",
        "session_id": "cs_test_created",
    }
    assert stripe_calls[0]["metadata"]["user_id"] == str(seller.id)


def test_route_requires_auth(client, catalog):
    response = client.post("/payments/create-checkout-session", json={"type": "tokens", "plan_slug": "starter"})
    assert response.status_code == 401


def test_route_renders_marketplace_errors(client, catalog, buyer, stripe_calls):
    response = client.post(
        "/payments/create-checkout-session",
        json={"type": "tokens", "plan_slug": "starter"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
    assert stripe_calls == []
