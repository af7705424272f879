import hashlib
import hmac
import json
import time
from decimal import Decimal

from app.models.booking import Booking
from app.models.payment import Payment
from app.models.service import Service

from conftest import auth_headers

API = "/api/v1"


def _book(client, seeded, day="2025-01-10"):
    res = client.post(
        f"{API}/bookings",
        json={"serviceId": seeded["service"].id, "bookingDate": day, "location": "Dhaka"},
        headers=auth_headers(seeded["user"]),
    )
    assert res.status_code == 201, res.text
    return res.json()


def _signed(payload: bytes, secret: str = "whsec_test", ts: int | None = None) -> str:
    ts = int(time.time()) if ts is None else ts
    sig = hmac.new(secret.encode(), f"{ts}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_login_me(client):
    res = client.post(f"{API}/auth/register", json={"email": "New@x.com", "password": "secret123", "displayName": "New"})
    assert res.status_code == 200, res.text
    assert client.post(f"{API}/auth/register", json={"email": "new@x.com", "password": "secret123"}).status_code == 409

    tokens = client.post(f"{API}/auth/login", json={"email": "new@x.com", "password": "secret123"}).json()
    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["email"] == "new@x.com"
    assert me.json()["role"] == "user"

    assert client.post(f"{API}/auth/login", json={"email": "new@x.com", "password": "wrong-pass"}).status_code == 401
    # refresh tokens are not access tokens
    assert client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}).status_code == 401
    refreshed = client.post(f"{API}/auth/refresh", params={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200


def test_requires_authentication(client, seeded):
    assert client.get(f"{API}/bookings/mine").status_code == 401
    assert client.get(f"{API}/bookings/mine", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_public_catalog(client, seeded):
    res = client.get(f"{API}/services", params={"search": "wedding"})
    body = res.json()
    assert body["total"] == 1
    assert body["items"][0]["name"] == "Wedding Stage Decoration"

    assert client.get(f"{API}/services/{seeded['service'].id}").status_code == 200
    missing = client.get(f"{API}/services/nope")
    assert missing.status_code == 404
    assert missing.json() == {"error": "not_found", "message": "Service not found", "retryable": False}

    decorators = client.get(f"{API}/decorators").json()
    assert [d["email"] for d in decorators] == ["d@x.com"]


def test_booking_lifecycle(client, database, seeded):
    booking = _book(client, seeded)
    assert booking["status"] == "pending"
    assert booking["isPaid"] is False
    with database.session() as s:
        assert s.get(Service, seeded["service"].id).booking_count == 1

    admin, decorator = auth_headers(seeded["admin"]), auth_headers(seeded["decorator"])
    res = client.patch(f"{API}/admin/bookings/{booking['id']}/assign", json={"decoratorEmail": "d@x.com"}, headers=admin)
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "assigned"

    listed = client.get(f"{API}/decorator/bookings", headers=decorator).json()
    assert [b["id"] for b in listed] == [booking["id"]]

    url = f"{API}/decorator/bookings/{booking['id']}/status"
    assert client.patch(url, json={"status": "in_progress"}, headers=decorator).json()["status"] == "in_progress"
    assert client.patch(url, json={"status": "completed"}, headers=decorator).json()["status"] == "completed"

    back = client.patch(url, json={"status": "in_progress"}, headers=decorator)
    assert back.status_code == 409
    assert back.json()["error"] == "conflict"
    assert client.patch(url, json={"status": "shipped"}, headers=decorator).status_code == 400

    got = client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(seeded["user"])).json()
    assert got["status"] == "completed"
    assert {"pending", "assigned", "in_progress", "completed"} <= set(got["statusHistory"])


def test_role_gates(client, seeded):
    booking = _book(client, seeded)
    user = auth_headers(seeded["user"])
    res = client.patch(f"{API}/admin/bookings/{booking['id']}/assign", json={"decoratorEmail": "d@x.com"}, headers=user)
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"
    assert client.get(f"{API}/decorator/bookings", headers=user).status_code == 403
    assert client.post(f"{API}/bookings", json={"serviceId": seeded["service"].id, "bookingDate": "2025-01-10"},
                       headers=auth_headers(seeded["decorator"])).status_code == 403
    assert client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(seeded["other"])).status_code == 403


def test_generic_update_refuses_payment_fields(client, seeded):
    booking = _book(client, seeded)
    user = auth_headers(seeded["user"])

    res = client.patch(f"{API}/bookings/{booking['id']}", json={"isPaid": True}, headers=user)
    assert res.status_code == 400
    assert res.json()["error"] == "validation_error"

    res = client.patch(f"{API}/bookings/{booking['id']}", json={"notes": "gold theme"}, headers=user)
    assert res.status_code == 200
    assert res.json()["notes"] == "gold theme"
    assert res.json()["isPaid"] is False


def test_my_bookings_pagination(client, seeded):
    for day in ("2025-01-01", "2025-01-02", "2025-01-03"):
        _book(client, seeded, day)
    res = client.get(f"{API}/bookings/mine", params={"limit": 2, "sort": "bookingDate"}, headers=auth_headers(seeded["user"]))
    body = res.json()
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert [b["bookingDate"] for b in body["items"]] == ["2025-01-01", "2025-01-02"]
    assert client.get(f"{API}/bookings/mine", params={"limit": 1000}, headers=auth_headers(seeded["user"])).status_code == 400


def test_checkout_verify_and_cancel_guard(client, database, provider, seeded):
    booking = _book(client, seeded)
    user = auth_headers(seeded["user"])

    res = client.post(f"{API}/payments/checkout-session",
                      json={"bookingId": booking["id"], "amount": 1500, "serviceName": "Wedding Stage"}, headers=user)
    assert res.status_code == 200, res.text
    session_id = res.json()["sessionId"]
    # provider says the customer paid
    provider.sessions[session_id].payment_status = "paid"
    provider.sessions[session_id].transaction_ref = "pi_abc"

    first = client.post(f"{API}/payments/verify", json={"sessionId": session_id, "bookingId": booking["id"]}, headers=user)
    assert first.status_code == 200, first.text
    assert first.json()["status"] == "settled"
    assert first.json()["amount"] == "1500.00"

    second = client.post(f"{API}/payments/verify", json={"sessionId": session_id, "bookingId": booking["id"]}, headers=user).json()
    assert second["status"] == "already_settled"
    assert second["paidAt"] == first.json()["paidAt"]

    cancel = client.delete(f"{API}/bookings/{booking['id']}", headers=user)
    assert cancel.status_code == 409

    mine = client.get(f"{API}/payments/mine", headers=user).json()
    assert [p["transactionId"] for p in mine] == ["pi_abc"]
    with database.session() as s:
        assert s.query(Payment).count() == 1
        assert s.get(Booking, booking["id"]).is_paid is True


def test_checkout_upstream_failure_is_retryable(client, provider, seeded):
    booking = _book(client, seeded)
    provider.fail = True
    res = client.post(f"{API}/payments/checkout-session",
                      json={"bookingId": booking["id"], "amount": 1500}, headers=auth_headers(seeded["user"]))
    assert res.status_code == 502
    assert res.json()["error"] == "upstream_error"
    assert res.json()["retryable"] is True


def test_cancel_unpaid_booking(client, database, seeded):
    booking = _book(client, seeded)
    res = client.delete(f"{API}/bookings/{booking['id']}", headers=auth_headers(seeded["user"]))
    assert res.json() == {"deleted": True, "bookingId": booking["id"]}
    assert client.get(f"{API}/bookings/{booking['id']}", headers=auth_headers(seeded["user"])).status_code == 404
    with database.session() as s:
        assert s.get(Service, seeded["service"].id).booking_count == 0


def test_webhook_settles_signed_event(client, database, provider, seeded):
    booking = _book(client, seeded)
    provider.add_session("cs_hook", booking["id"], 250000)
    payload = json.dumps({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_hook", "metadata": {"bookingId": booking["id"]}}},
    }).encode()

    bad = client.post(f"{API}/webhooks/stripe", content=payload, headers={"stripe-signature": _signed(payload, "whsec_wrong")})
    assert bad.status_code == 401

    res = client.post(f"{API}/webhooks/stripe", content=payload, headers={"stripe-signature": _signed(payload)})
    assert res.status_code == 200, res.text
    assert res.json() == {"received": True, "handled": True, "status": "settled"}
    with database.session() as s:
        assert s.query(Payment).one().amount == Decimal("2500.00")


def test_webhook_rejects_signed_body_that_is_not_an_object(client, seeded):
    for payload in (b"[1]", b"null", b"not json"):
        res = client.post(f"{API}/webhooks/stripe", content=payload, headers={"stripe-signature": _signed(payload)})
        assert res.status_code == 400, payload


def test_admin_views(client, provider, seeded):
    booking = _book(client, seeded)
    admin = auth_headers(seeded["admin"])
    client.patch(f"{API}/admin/bookings/{booking['id']}/assign", json={"decoratorEmail": "d@x.com"}, headers=admin)
    provider.add_session("cs_paid", booking["id"], 150000)
    client.post(f"{API}/payments/verify", json={"sessionId": "cs_paid", "bookingId": booking["id"]}, headers=admin)

    dash = client.get(f"{API}/admin/dashboard", headers=admin).json()
    assert dash["totalBookings"] == 1
    assert dash["paidBookings"] == 1
    assert Decimal(dash["revenue"]) == Decimal("1500")
    assert dash["bookingsByStatus"]["assigned"] == 1
    assert dash["topServices"][0]["bookingCount"] == 1
    assert dash["usersByRole"] == {"user": 2, "decorator": 1, "admin": 1}

    assert client.get(f"{API}/admin/bookings", params={"status": "assigned"}, headers=admin).json()["total"] == 1
    assert len(client.get(f"{API}/admin/payments", headers=admin).json()) == 1
    assert client.post(f"{API}/admin/payments/reconcile", headers=admin).json() == {"repaired": [], "orphaned": []}

    earnings = client.get(f"{API}/decorator/earnings", headers=auth_headers(seeded["decorator"])).json()
    assert earnings["count"] == 1
    assert Decimal(earnings["totalEarnings"]) == Decimal("1500.00")


def test_admin_creates_service_and_decorator(client, seeded):
    admin = auth_headers(seeded["admin"])
    res = client.post(f"{API}/admin/services", json={"name": "Birthday Balloons", "category": "birthday", "price": "3500"}, headers=admin)
    assert res.status_code == 201, res.text
    assert res.json()["bookingCount"] == 0

    res = client.post(f"{API}/admin/users", json={
        "email": "d2@x.com", "tempPassword": "decorator123", "displayName": "Tanvir", "role": "decorator"}, headers=admin)
    assert res.status_code == 200, res.text
    assert "d2@x.com" in [d["email"] for d in client.get(f"{API}/decorators").json()]
