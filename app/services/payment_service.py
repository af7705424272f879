"""
Checkout creation and settlement of confirmed payments against bookings.

Settlement is the only place a booking becomes paid. It re-reads the checkout
session from the provider and records the provider's amount, never the amount
the client sent. A Payment insert and the booking's paid flag are committed in
one transaction; the unique keys on payments (session_id, booking_id,
transaction_id) make a replayed settlement collide instead of duplicating.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from urllib.parse import quote

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, Forbidden, NotFound, UpstreamError, ValidationError
from app.models.booking import Booking
from app.models.payment import Payment
from app.models.user import User
from app.services.audit_service import log_audit
from app.services.stripe_client import CheckoutSession, StripeError

logger = logging.getLogger(__name__)

SETTLED = "settled"
ALREADY_SETTLED = "already_settled"
DECLINED = "declined"

SETTLEMENT_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_minor_units(amount) -> int:
    """1500.005 -> 150001 (round half up). Rejects non-numeric and non-positive amounts."""
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Amount '{amount}' is not a number")
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive number")
    minor = int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if minor <= 0:
        raise ValidationError("Amount is too small to charge")
    return minor


def from_minor_units(minor: int) -> Decimal:
    return (Decimal(int(minor)) / 100).quantize(Decimal("0.01"))


class PaymentService:
    def __init__(self, db: Session, provider, *, currency: str | None = None, client_base_url: str | None = None):
        self.db = db
        self.provider = provider
        self.currency = (currency or settings.PAYMENT_CURRENCY).lower()
        self.client_base_url = (client_base_url if client_base_url is not None else settings.CLIENT_BASE_URL).rstrip("/")

    # -------------------------
    # CHECKOUT
    # -------------------------
    def create_checkout_intent(self, booking_id: str, amount, service_name: str, user_email: str) -> dict:
        amount_minor = to_minor_units(amount)
        b = self.db.get(Booking, booking_id)
        if not b:
            raise NotFound("Booking not found")
        if b.user_email != (user_email or "").lower():
            raise Forbidden("Only the booking owner can pay for it")
        if b.is_paid:
            raise Conflict("Booking is already paid")

        booking_q = quote(b.id, safe="")
        # {CHECKOUT_SESSION_ID} is substituted by the provider on redirect
        success_url = f"{self.client_base_url}/dashboard/payment-success?session_id={{CHECKOUT_SESSION_ID}}&bookingId={booking_q}"
        cancel_url = f"{self.client_base_url}/dashboard/payment-cancelled?bookingId={booking_q}"
        name = service_name or b.service_name or "Decoration service"
        try:
            session = self.provider.create_checkout_session(
                amount_minor=amount_minor,
                currency=self.currency,
                product_name=name,
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=b.user_email,
                metadata={"bookingId": b.id, "serviceName": name, "userEmail": b.user_email},
            )
        except StripeError as e:
            logger.error("checkout session creation failed for booking %s: %s", b.id, e)
            raise UpstreamError("Payment provider unavailable, please retry")

        logger.info("checkout session %s created for booking %s (%s minor units)", session.session_id, b.id, amount_minor)
        return {"sessionId": session.session_id, "url": session.url}

    # -------------------------
    # SETTLEMENT
    # -------------------------
    def verify_and_settle(self, session_id: str, booking_id: str, actor: User | None = None) -> dict:
        if not session_id:
            raise ValidationError("sessionId is required")
        b = self.db.get(Booking, booking_id)
        if not b:
            raise NotFound("Booking not found")
        if actor is not None and actor.role != "admin" and b.user_email != actor.email:
            raise Forbidden("Only the booking owner can verify its payment")

        existing = self.db.query(Payment).filter(Payment.session_id == session_id).first()
        if existing:
            if existing.booking_id != b.id:
                raise Conflict("Checkout session belongs to another booking")
            return self._result(ALREADY_SETTLED, b, existing)

        try:
            session: CheckoutSession = self.provider.retrieve_session(session_id)
        except StripeError as e:
            logger.error("retrieving checkout session %s failed: %s", session_id, e)
            raise UpstreamError("Payment provider unavailable, please retry verification")

        if session.metadata.get("bookingId") != b.id:
            raise ValidationError("Checkout session does not belong to this booking")
        if session.payment_status != "paid":
            logger.info("checkout session %s for booking %s not paid (%s)", session_id, b.id, session.payment_status)
            return {"status": DECLINED, "bookingId": b.id, "paymentStatus": session.payment_status}

        if b.is_paid:
            return self._result(ALREADY_SETTLED, b, self._payment_for(b))

        amount = from_minor_units(session.amount_total)
        if amount <= 0:
            raise ValidationError("Provider reported a paid session without an amount")

        now = _now()
        payment = Payment(
            id=str(uuid.uuid4()),
            booking_id=b.id,
            session_id=session.session_id or session_id,
            transaction_id=session.transaction_ref or session.session_id or session_id,
            provider="stripe",
            user_email=b.user_email,
            decorator_email=b.decorator_email,
            service_name=session.metadata.get("serviceName") or b.service_name,
            amount=amount,
            currency=(session.currency or self.currency).lower(),
            created_at=now,
        )
        try:
            with self.db.begin_nested():
                self.db.add(payment)
        except IntegrityError:
            # lost the race to a concurrent settlement of the same session/booking
            self.db.rollback()
            b = self.db.get(Booking, booking_id, populate_existing=True)
            if b is None:
                raise NotFound("Booking not found")
            return self._result(ALREADY_SETTLED, b, self._payment_for(b, session_id))

        res = self.db.execute(
            update(Booking)
            .where(Booking.id == b.id, Booking.is_paid == False)  # noqa: E712
            .values(is_paid=True, payment_id=payment.id, paid_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            current = self.db.get(Booking, booking_id, populate_existing=True)
            if current is None:
                raise NotFound("Booking not found (it may have been cancelled)")
            if current.is_paid:
                return self._result(ALREADY_SETTLED, current, self._payment_for(current))
            raise Conflict("Booking changed during settlement; retry")

        log_audit(self.db, "stripe", "payment.settled", "booking", b.id, {
            "paymentId": payment.id, "sessionId": payment.session_id,
            "transactionId": payment.transaction_id, "amount": str(amount),
        })
        self.db.commit()
        self.db.refresh(b)
        logger.info("booking %s settled by payment %s (%s %s)", b.id, payment.id, amount, payment.currency)
        return self._result(SETTLED, b, payment)

    def handle_webhook_event(self, event: dict) -> dict:
        """Settle from a provider event. The event body is only used to find the session;
        the session itself is re-read from the provider."""
        event_type = event.get("type") or ""
        if event_type not in SETTLEMENT_EVENTS:
            return {"received": True, "handled": False}
        obj = (event.get("data") or {}).get("object") or {}
        session_id = obj.get("id") or ""
        booking_id = (obj.get("metadata") or {}).get("bookingId") or ""
        if not session_id or not booking_id:
            logger.warning("webhook %s without session or bookingId, ignoring", event.get("id"))
            return {"received": True, "handled": False}
        try:
            result = self.verify_and_settle(session_id, booking_id)
        except (NotFound, Conflict, ValidationError) as e:
            # not retryable; acknowledge so the provider stops redelivering
            logger.warning("webhook settlement of %s for booking %s rejected: %s", session_id, booking_id, e.message)
            return {"received": True, "handled": False, "error": e.kind}
        return {"received": True, "handled": True, "status": result["status"]}

    def reconcile(self) -> dict:
        """Repair bookings left unpaid although their Payment exists; report orphaned Payments."""
        rows = (
            self.db.query(Payment, Booking)
            .outerjoin(Booking, Booking.id == Payment.booking_id)
            .filter((Booking.id == None) | (Booking.is_paid == False))  # noqa: E711,E712
            .order_by(Payment.created_at.asc())
            .all()
        )
        repaired, orphaned = [], []
        for p, b in rows:
            if b is None:
                orphaned.append(p.id)
                logger.warning("payment %s references missing booking %s", p.id, p.booking_id)
                continue
            res = self.db.execute(
                update(Booking)
                .where(Booking.id == b.id, Booking.is_paid == False)  # noqa: E712
                .values(is_paid=True, payment_id=p.id, paid_at=p.created_at, updated_at=_now())
                .execution_options(synchronize_session=False)
            )
            if res.rowcount:
                repaired.append(b.id)
                log_audit(self.db, "system", "payment.reconciled", "booking", b.id, {"paymentId": p.id})
        self.db.commit()
        if repaired:
            logger.warning("reconciled %d unpaid booking(s) with existing payments", len(repaired))
        return {"repaired": repaired, "orphaned": orphaned}

    # -------------------------
    # READS
    # -------------------------
    def list_for_user(self, email: str) -> list[Payment]:
        return self.db.query(Payment).filter(Payment.user_email == email.lower()).order_by(Payment.created_at.desc()).all()

    def list_for_decorator(self, email: str) -> dict:
        rows = (
            self.db.query(Payment)
            .filter(Payment.decorator_email == email.lower())
            .order_by(Payment.created_at.desc())
            .all()
        )
        total = sum((Decimal(p.amount) for p in rows), Decimal("0.00"))
        return {"items": rows, "totalEarnings": total, "count": len(rows)}

    def list_all(self) -> list[Payment]:
        return self.db.query(Payment).order_by(Payment.created_at.desc()).all()

    def _payment_for(self, b: Booking, session_id: str | None = None) -> Payment | None:
        if b.payment_id:
            p = self.db.get(Payment, b.payment_id)
            if p:
                return p
        q = self.db.query(Payment).filter(Payment.booking_id == b.id)
        if session_id:
            p = self.db.query(Payment).filter(Payment.session_id == session_id).first()
            if p:
                return p
        return q.first()

    @staticmethod
    def _result(status: str, b: Booking, p: Payment | None) -> dict:
        return {
            "status": status,
            "bookingId": b.id,
            "isPaid": bool(b.is_paid),
            "paymentId": p.id if p else b.payment_id,
            "transactionId": p.transaction_id if p else None,
            "amount": str(p.amount) if p else None,
            "currency": p.currency if p else None,
            "paidAt": b.paid_at.isoformat() if b.paid_at else None,
        }
