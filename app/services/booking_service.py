import logging
import uuid
from datetime import date, datetime, timezone
from sqlalchemy import update, delete
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound, ValidationError
from app.models.booking import Booking, BookingStatus
from app.models.payment import Payment
from app.models.service import Service
from app.models.user import User
from app.services.audit_service import log_audit
from app.services.booking_state import (
    ASSIGNABLE_STATUSES,
    CANCELLABLE_STATUSES,
    EDITABLE_STATUSES,
    ensure_transition,
    parse_status,
)
from app.services.pagination import paginate
from app.services.service_counter import ServiceCounter

logger = logging.getLogger(__name__)

# request key -> column for owner edits; everything else is rejected
EDITABLE_FIELDS = {
    "bookingDate": "booking_date",
    "location": "location",
    "notes": "notes",
    "userName": "user_name",
}
PROTECTED_FIELDS = {"isPaid", "is_paid", "paymentId", "payment_id", "paidAt", "paid_at", "status", "statusHistory", "status_history"}

SORT_FIELDS = {
    "createdAt": Booking.created_at,
    "bookingDate": Booking.booking_date,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def parse_booking_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid bookingDate '{value}', expected YYYY-MM-DD")


def _order_by(sort: str | None):
    sort = (sort or "-createdAt").strip()
    desc = sort.startswith("-")
    col = SORT_FIELDS.get(sort.lstrip("-"))
    if col is None:
        raise ValidationError(f"Unsupported sort '{sort}'. Use one of: {', '.join(SORT_FIELDS)} (prefix '-' for descending)")
    return col.desc() if desc else col.asc()


class BookingService:
    def __init__(self, db: Session, counter: ServiceCounter | None = None):
        self.db = db
        self.counter = counter or ServiceCounter(db)

    # -------------------------
    # WRITES
    # -------------------------
    def create(self, service_id: str, user_email: str, booking_date, *, user_name: str = "",
               location: str = "", notes: str = "") -> Booking:
        service = self.db.get(Service, service_id)
        if not service:
            raise NotFound("Service not found")
        if not service.is_active:
            raise ValidationError("Service is not available for booking")

        now = _now()
        booking = Booking(
            id=str(uuid.uuid4()),
            service_id=service.id,
            service_name=service.name,
            user_email=user_email.lower(),
            user_name=user_name or "",
            booking_date=parse_booking_date(booking_date),
            location=location or "",
            notes=notes or "",
            status=BookingStatus.PENDING.value,
            status_history={BookingStatus.PENDING.value: now.isoformat()},
            is_paid=False,
            payment_id=None,
            created_at=now,
        )
        self.db.add(booking)
        log_audit(self.db, booking.user_email, "booking.created", "booking", booking.id, {"serviceId": service.id})
        self.db.commit()

        self.counter.on_booking_created(service.id)
        logger.info("booking %s created for service %s by %s", booking.id, service.id, booking.user_email)
        return booking

    def assign_decorator(self, booking_id: str, decorator_email: str, decorator_name: str = "", *, actor: User) -> Booking:
        b = self.get(booking_id)
        status = parse_status(b.status)
        if status not in ASSIGNABLE_STATUSES:
            raise Conflict(f"Cannot assign a decorator to a '{status.value}' booking")

        decorator_email = decorator_email.strip().lower()
        decorator = self.db.query(User).filter(User.email == decorator_email).first()
        if not decorator or decorator.role != "decorator" or not decorator.is_active:
            raise ValidationError(f"{decorator_email} is not an active decorator")

        now = _now()
        history = dict(b.status_history or {})
        history.setdefault(BookingStatus.ASSIGNED.value, now.isoformat())
        if b.is_paid:
            # paid before anyone was assigned; the first decorator takes the earnings
            self.db.execute(
                update(Payment)
                .where(Payment.booking_id == b.id, Payment.decorator_email.is_(None))
                .values(decorator_email=decorator.email)
                .execution_options(synchronize_session=False)
            )
        self._compare_and_set(b, {
            "decorator_email": decorator.email,
            "decorator_name": decorator_name or decorator.display_name or "",
            "status": BookingStatus.ASSIGNED.value,
            "status_history": history,
            "assigned_at": now,
            "updated_at": now,
        }, actor.email, "booking.assigned", {"decoratorEmail": decorator.email, "from": status.value})
        return b

    def update_status(self, booking_id: str, new_status, *, actor: User) -> Booking:
        target = parse_status(new_status)
        b = self.get(booking_id)
        if actor.role != "admin" and (actor.role != "decorator" or b.decorator_email != actor.email):
            raise Forbidden("Only the assigned decorator or an admin can update this booking's status")
        if target == BookingStatus.ASSIGNED:
            raise Conflict("Use decorator assignment to move a booking to 'assigned'")
        if target == BookingStatus.CANCELLED:
            raise Conflict("Bookings are cancelled by their owner through cancellation")
        current = parse_status(b.status)
        ensure_transition(current, target)

        now = _now()
        history = dict(b.status_history or {})
        history[target.value] = now.isoformat()
        self._compare_and_set(b, {
            "status": target.value,
            "status_history": history,
            "updated_at": now,
        }, actor.email, "booking.status_changed", {"from": current.value, "to": target.value})
        return b

    def update_fields(self, booking_id: str, fields: dict, *, actor: User) -> Booking:
        b = self.get(booking_id)
        if b.user_email != actor.email:
            raise Forbidden("Only the booking owner can edit it")
        if not fields:
            raise ValidationError("No fields to update")

        protected = sorted(k for k in fields if k in PROTECTED_FIELDS)
        if protected:
            raise ValidationError(f"Field(s) {', '.join(protected)} cannot be changed through this endpoint")
        unknown = sorted(k for k in fields if k not in EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")
        if b.is_paid:
            raise Conflict("Paid bookings can no longer be edited")
        status = parse_status(b.status)
        if status not in EDITABLE_STATUSES:
            raise Conflict(f"A '{status.value}' booking can no longer be edited")

        values = {}
        for key, value in fields.items():
            col = EDITABLE_FIELDS[key]
            values[col] = parse_booking_date(value) if col == "booking_date" else ("" if value is None else str(value))
        values["updated_at"] = _now()

        res = self.db.execute(
            update(Booking)
            .where(
                Booking.id == b.id,
                Booking.user_email == actor.email,
                Booking.is_paid == False,  # noqa: E712
                Booking.status.in_([s.value for s in EDITABLE_STATUSES]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            if self.db.get(Booking, b.id, populate_existing=True) is None:
                raise NotFound("Booking not found")
            raise Conflict("Booking changed while editing (it may have been paid or started); reload and retry")
        log_audit(self.db, actor.email, "booking.updated", "booking", b.id, {"fields": sorted(fields)})
        self.db.commit()
        self.db.refresh(b)
        return b

    def cancel(self, booking_id: str, requester_email: str) -> dict:
        b = self.get(booking_id)
        requester_email = (requester_email or "").lower()
        if b.user_email != requester_email:
            raise Forbidden("Only the booking owner can cancel it")
        if b.is_paid:
            raise Conflict("Paid bookings cannot be cancelled")
        status = parse_status(b.status)
        if status not in CANCELLABLE_STATUSES:
            raise Conflict(f"A '{status.value}' booking cannot be cancelled")

        # The checks above give precise errors; this statement is what enforces them.
        res = self.db.execute(
            delete(Booking)
            .where(
                Booking.id == b.id,
                Booking.user_email == requester_email,
                Booking.is_paid == False,  # noqa: E712
                Booking.status.in_([s.value for s in CANCELLABLE_STATUSES]),
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            if self.db.get(Booking, b.id, populate_existing=True) is None:
                raise NotFound("Booking not found")
            raise Conflict("Booking changed while cancelling (it may have just been paid); reload and retry")

        log_audit(self.db, requester_email, "booking.cancelled", "booking", b.id, {"status": status.value, "serviceId": b.service_id})
        self.db.commit()
        self.db.expunge(b)

        self.counter.on_booking_cancelled(b.service_id)
        logger.info("booking %s cancelled by %s", b.id, requester_email)
        return {"deleted": True, "bookingId": b.id}

    def _compare_and_set(self, b: Booking, values: dict, actor: str, action: str, details: dict) -> None:
        """Write `values` only if the row still has the status and decorator we read."""
        if b.decorator_email is None:
            assignee = Booking.decorator_email.is_(None)
        else:
            assignee = Booking.decorator_email == b.decorator_email
        res = self.db.execute(
            update(Booking)
            .where(Booking.id == b.id, Booking.status == b.status, assignee)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            raise Conflict("Booking was modified concurrently; reload and retry")
        log_audit(self.db, actor, action, "booking", b.id, details)
        self.db.commit()
        self.db.refresh(b)

    # -------------------------
    # READS
    # -------------------------
    def get(self, booking_id: str) -> Booking:
        b = self.db.get(Booking, booking_id)
        if not b:
            raise NotFound("Booking not found")
        return b

    def get_for(self, booking_id: str, actor: User) -> Booking:
        b = self.get(booking_id)
        if actor.role == "admin" or b.user_email == actor.email or (b.decorator_email and b.decorator_email == actor.email):
            return b
        raise Forbidden("You do not have access to this booking")

    def list_by_user(self, email: str, page: int | None = 1, limit: int | None = None, sort: str | None = None) -> dict:
        q = self.db.query(Booking).filter(Booking.user_email == email.lower()).order_by(_order_by(sort))
        return paginate(q, page, limit)

    def list_by_decorator(self, email: str, status: str | None = None) -> list[Booking]:
        q = self.db.query(Booking).filter(Booking.decorator_email == email.lower())
        if status:
            q = q.filter(Booking.status == parse_status(status).value)
        return q.order_by(Booking.booking_date.asc(), Booking.created_at.asc()).all()

    def list_all(self, status: str | None = None, sort: str | None = None, page: int | None = 1, limit: int | None = None) -> dict:
        q = self.db.query(Booking)
        if status:
            q = q.filter(Booking.status == parse_status(status).value)
        return paginate(q.order_by(_order_by(sort)), page, limit)
