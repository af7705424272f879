from fastapi import APIRouter, Body, Depends

from app.api.deps import get_booking_service, get_current_user, require_roles
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingOut, booking_out, page_out
from app.services.booking_service import BookingService

router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingOut, status_code=201)
def create_booking(body: BookingCreate,
                   svc: BookingService = Depends(get_booking_service),
                   me: User = Depends(require_roles("user"))):
    b = svc.create(
        body.serviceId,
        me.email,
        body.bookingDate,
        user_name=body.userName or me.display_name,
        location=body.location,
        notes=body.notes,
    )
    return booking_out(b)


@router.get("/bookings/mine")
def my_bookings(page: int = 1, limit: int | None = None, sort: str = "-createdAt",
                svc: BookingService = Depends(get_booking_service),
                me: User = Depends(get_current_user)):
    return page_out(svc.list_by_user(me.email, page=page, limit=limit, sort=sort))


@router.get("/bookings/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str,
                svc: BookingService = Depends(get_booking_service),
                me: User = Depends(get_current_user)):
    return booking_out(svc.get_for(booking_id, me))


@router.patch("/bookings/{booking_id}", response_model=BookingOut)
def update_booking(booking_id: str, body: dict = Body(...),
                   svc: BookingService = Depends(get_booking_service),
                   me: User = Depends(get_current_user)):
    """Owner edits (date, location, notes, name). Payment and status fields are refused."""
    return booking_out(svc.update_fields(booking_id, body, actor=me))


@router.delete("/bookings/{booking_id}")
def cancel_booking(booking_id: str,
                   svc: BookingService = Depends(get_booking_service),
                   me: User = Depends(get_current_user)):
    return svc.cancel(booking_id, me.email)
