from fastapi import APIRouter, Depends

from app.api.deps import get_booking_service, require_roles
from app.models.user import User
from app.schemas.booking import BookingOut, StatusUpdateIn, booking_out
from app.services.booking_service import BookingService

router = APIRouter(tags=["decorator"])

@router.get("/decorator/bookings")
def my_assigned_bookings(status: str | None = None,
                         svc: BookingService = Depends(get_booking_service),
                         me: User = Depends(require_roles("decorator"))):
    return [booking_out(b) for b in svc.list_by_decorator(me.email, status=status)]

@router.patch("/decorator/bookings/{booking_id}/status", response_model=BookingOut)
def update_project_status(booking_id: str, body: StatusUpdateIn,
                          svc: BookingService = Depends(get_booking_service),
                          me: User = Depends(require_roles("decorator"))):
    return booking_out(svc.update_status(booking_id, body.status, actor=me))
