import os
import uuid
from datetime import date
from decimal import Decimal

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CLIENT_BASE_URL", "https://lumora.test")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.session import Database
from app.main import create_app
from app.models.service import Service
from app.models.user import User
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentService
from app.services.stripe_client import CheckoutSession, StripeError


class FakeCheckoutProvider:
    """In-memory stand-in for StripeCheckoutClient."""

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[dict] = []
        self.retrieve_calls = 0
        self.fail = False

    def create_checkout_session(self, **kwargs) -> CheckoutSession:
        if self.fail:
            raise StripeError("Stripe 500: internal failure at acct_123", status_code=500)
        self.created.append(kwargs)
        sid = f"cs_test_{len(self.created)}"
        session = CheckoutSession(
            session_id=sid,
            url=f"https://checkout.stripe.test/{sid}",
            payment_status="unpaid",
            amount_total=kwargs["amount_minor"],
            currency=kwargs["currency"],
            customer_email=kwargs["customer_email"],
            metadata=dict(kwargs["metadata"]),
        )
        self.sessions[sid] = session
        return session

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.retrieve_calls += 1
        if self.fail:
            raise StripeError("Stripe 503: upstream connect error", status_code=503)
        if session_id not in self.sessions:
            raise StripeError(f"Stripe 404: No such checkout.session: {session_id}", status_code=404)
        return self.sessions[session_id]

    def add_session(self, session_id: str, booking_id: str, amount_total: int,
                    payment_status: str = "paid", transaction_ref: str | None = None) -> CheckoutSession:
        session = CheckoutSession(
            session_id=session_id,
            url=f"https://checkout.stripe.test/{session_id}",
            payment_status=payment_status,
            amount_total=amount_total,
            currency="bdt",
            customer_email="",
            transaction_ref=transaction_ref if transaction_ref is not None else f"pi_{session_id}",
            metadata={"bookingId": booking_id, "serviceName": "Wedding Stage Decoration"},
        )
        self.sessions[session_id] = session
        return session


@pytest.fixture
def database():
    database = Database("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def provider():
    return FakeCheckoutProvider()


@pytest.fixture
def booking_service(db):
    return BookingService(db)


@pytest.fixture
def payment_service(db, provider):
    return PaymentService(db, provider, currency="bdt", client_base_url="https://lumora.test")


def make_user(db, email: str, role: str = "user", name: str = "", is_approved: bool = False) -> User:
    u = User(
        id=str(uuid.uuid4()),
        email=email,
        display_name=name or email.split("@")[0],
        role=role,
        is_approved=is_approved,
        # hashing is not needed for token-based tests
        password_hash="x",
        is_active=True,
    )
    db.add(u)
    db.commit()
    return u


def make_service(db, name: str = "Wedding Stage Decoration", price: str = "45000.00") -> Service:
    s = Service(
        id=str(uuid.uuid4()),
        name=name,
        category="wedding",
        price=Decimal(price),
        is_active=True,
        booking_count=0,
    )
    db.add(s)
    db.commit()
    return s


@pytest.fixture
def customer(db):
    return make_user(db, "u@x.com", "user", "Ayesha")


@pytest.fixture
def decorator(db):
    return make_user(db, "d@x.com", "decorator", "Nadia", is_approved=True)


@pytest.fixture
def admin(db):
    return make_user(db, "admin@x.com", "admin", "Admin")


@pytest.fixture
def service(db):
    return make_service(db)


@pytest.fixture
def pending_booking(booking_service, service, customer):
    return booking_service.create(service.id, customer.email, date(2025, 1, 10), location="Dhaka")


# -------------------------
# API
# -------------------------
@pytest.fixture
def client(database, provider):
    app = create_app(database=database, payment_provider=provider)
    with TestClient(app) as c:
        yield c


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, role=user.role)}"}


@pytest.fixture
def seeded(database):
    """Users and a service committed through a short-lived session, for API tests."""
    with database.session() as s:
        users = {
            "user": make_user(s, "u@x.com", "user", "Ayesha"),
            "other": make_user(s, "other@x.com", "user", "Rafi"),
            "decorator": make_user(s, "d@x.com", "decorator", "Nadia", is_approved=True),
            "admin": make_user(s, "admin@x.com", "admin", "Admin"),
        }
        svc = make_service(s)
    return {**users, "service": svc}
