from datetime import date
from pydantic import BaseModel
from typing import Optional

from app.models.booking import Booking

class BookingCreate(BaseModel):
    serviceId: str
    bookingDate: date
    userName: str = ""
    location: str = ""
    notes: str = ""

class AssignDecoratorIn(BaseModel):
    decoratorEmail: str  # plain str to allow .local and other dev domains
    decoratorName: str = ""

class StatusUpdateIn(BaseModel):
    status: str

class BookingOut(BaseModel):
    id: str
    serviceId: str
    serviceName: str
    userEmail: str
    userName: str = ""
    decoratorEmail: Optional[str] = None
    decoratorName: Optional[str] = None
    bookingDate: str
    location: str = ""
    notes: str = ""
    status: str
    statusHistory: dict = {}
    isPaid: bool
    paymentId: Optional[str] = None
    createdAt: str
    updatedAt: Optional[str] = None
    assignedAt: Optional[str] = None
    paidAt: Optional[str] = None


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        id=b.id,
        serviceId=b.service_id,
        serviceName=b.service_name or "",
        userEmail=b.user_email,
        userName=b.user_name or "",
        decoratorEmail=b.decorator_email,
        decoratorName=b.decorator_name,
        bookingDate=b.booking_date.isoformat(),
        location=b.location or "",
        notes=b.notes or "",
        status=b.status,
        statusHistory=dict(b.status_history or {}),
        isPaid=bool(b.is_paid),
        paymentId=b.payment_id,
        createdAt=_iso(b.created_at),
        updatedAt=_iso(b.updated_at),
        assignedAt=_iso(b.assigned_at),
        paidAt=_iso(b.paid_at),
    )


def page_out(page: dict) -> dict:
    return {**page, "items": [booking_out(b) for b in page["items"]]}
