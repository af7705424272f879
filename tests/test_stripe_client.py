import hashlib
import hmac
import time

import pytest
import stripe

from app.services.stripe_client import (
    CheckoutSession,
    StripeCheckoutClient,
    StripeConfig,
    StripeError,
    WebhookError,
    WebhookSignatureError,
    construct_webhook_event,
    load_event,
)


@pytest.fixture
def client(monkeypatch):
    # the client writes module-level SDK settings; restore them after each test
    for name in ("api_key", "api_base", "default_http_client", "max_network_retries"):
        monkeypatch.setattr(stripe, name, getattr(stripe, name))
    return StripeCheckoutClient(StripeConfig(secret_key="sk_test_123", api_base="https://stripe.test/", timeout=5))


def test_client_configures_sdk_with_bounded_timeout(client):
    assert stripe.api_key == "sk_test_123"
    assert stripe.api_base == "https://stripe.test"
    assert isinstance(stripe.default_http_client, stripe.RequestsClient)
    assert stripe.max_network_retries == 1


def test_create_checkout_session(client, monkeypatch):
    seen = {}

    def fake_create(**kwargs):
        seen.update(kwargs)
        return {"id": "cs_1", "url": "https://checkout.stripe.test/cs_1", "payment_status": "unpaid",
                "amount_total": 150000, "currency": "bdt", "metadata": {"bookingId": "b1"}}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    session = client.create_checkout_session(
        amount_minor=150000, currency="bdt", product_name="Stage", success_url="https://a/ok",
        cancel_url="https://a/no", customer_email="u@x.com", metadata={"bookingId": "b1"},
    )

    assert seen["mode"] == "payment"
    assert seen["api_key"] == "sk_test_123"
    assert seen["line_items"] == [{
        "price_data": {"currency": "bdt", "unit_amount": 150000, "product_data": {"name": "Stage"}},
        "quantity": 1,
    }]
    assert seen["metadata"] == {"bookingId": "b1"}
    assert session.session_id == "cs_1"
    assert session.amount_total == 150000


def test_retrieve_session_maps_payment_intent(client, monkeypatch):
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", lambda session_id, **kw: {
        "id": session_id, "payment_status": "paid", "amount_total": 99900, "currency": "bdt",
        "payment_intent": {"id": "pi_9"}, "customer_details": {"email": "u@x.com"},
    })
    session = client.retrieve_session("cs_1")
    assert session.session_id == "cs_1"
    assert session.payment_status == "paid"
    assert session.transaction_ref == "pi_9"
    assert session.customer_email == "u@x.com"


def test_sdk_errors_are_wrapped(client, monkeypatch):
    def not_found(session_id, **kw):
        raise stripe.InvalidRequestError("No such checkout.session: cs_x", "id", http_status=404)

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", not_found)
    with pytest.raises(StripeError) as exc:
        client.retrieve_session("cs_x")
    assert exc.value.status_code == 404

    def unreachable(**kw):
        raise stripe.APIConnectionError("connection refused")

    monkeypatch.setattr(stripe.checkout.Session, "create", unreachable)
    with pytest.raises(StripeError):
        client.create_checkout_session(amount_minor=1, currency="bdt", product_name="x", success_url="s",
                                       cancel_url="c", customer_email="u@x.com", metadata={})


def test_checkout_session_from_api_defaults():
    s = CheckoutSession.from_api({"id": "cs_2", "payment_intent": "pi_2"})
    assert s.payment_status == "unpaid"
    assert s.amount_total == 0
    assert s.transaction_ref == "pi_2"
    assert s.metadata == {}


def _header(payload: bytes, secret: str, ts: int | None = None) -> str:
    ts = int(time.time()) if ts is None else ts
    sig = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def test_construct_webhook_event():
    body = b'{"id": "evt_1", "object": "event", "type": "checkout.session.completed", "data": {"object": {"id": "cs_1"}}}'

    event = construct_webhook_event(body, _header(body, "whsec_1"), "whsec_1")
    assert event["type"] == "checkout.session.completed"
    assert event["data"]["object"]["id"] == "cs_1"

    with pytest.raises(WebhookSignatureError):
        construct_webhook_event(body, _header(body, "whsec_2"), "whsec_1")
    with pytest.raises(WebhookSignatureError):
        construct_webhook_event(body, "", "whsec_1")
    with pytest.raises(WebhookSignatureError):
        construct_webhook_event(body, _header(body, "whsec_1", ts=int(time.time()) - 3600), "whsec_1")
    with pytest.raises(WebhookSignatureError):
        construct_webhook_event(body, _header(body, ""), "")


def test_construct_webhook_event_rejects_non_object_bodies():
    for body in (b"[1]", b"not json", b'"text"'):
        with pytest.raises(WebhookError) as exc:
            construct_webhook_event(body, _header(body, "whsec_1"), "whsec_1")
        assert exc.value.status_code == 400


def test_load_event():
    assert load_event(b'{"type": "checkout.session.completed"}') == {"type": "checkout.session.completed"}
    with pytest.raises(WebhookError):
        load_event(b"[1]")
    with pytest.raises(WebhookError):
        load_event(b"")
