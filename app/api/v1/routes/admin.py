import uuid
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.api.deps import get_db, get_booking_service, require_roles
from app.core.errors import Conflict, NotFound, ValidationError
from app.core.security import hash_password
from app.models.booking import Booking, BookingStatus
from app.models.payment import Payment
from app.models.service import Service
from app.models.user import User, ROLES
from app.schemas.auth import user_out
from app.schemas.booking import AssignDecoratorIn, BookingOut, StatusUpdateIn, booking_out, page_out
from app.schemas.service import ServiceIn, ServiceOut, service_out
from app.services.audit_service import log_audit
from app.services.booking_service import BookingService
from app.services.pagination import paginate

router = APIRouter(tags=["admin"])

class UserCreateIn(BaseModel):
    email: str
    displayName: str = ""
    role: str = "decorator"
    specialty: str = ""
    tempPassword: str | None = None

class UserPatchIn(BaseModel):
    displayName: str | None = None
    role: str | None = None
    specialty: str | None = None
    isApproved: bool | None = None
    isActive: bool | None = None


# -------------------------
# USERS + DECORATOR APPROVAL
# -------------------------
@router.get("/admin/users")
def list_users(role: str | None = None, q: str | None = None, page: int = 1, limit: int | None = None,
               db: Session = Depends(get_db),
               me: User = Depends(require_roles("admin"))):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if q:
        ql = f"%{q.lower()}%"
        query = query.filter(func.lower(User.email).like(ql) | func.lower(User.display_name).like(ql))
    res = paginate(query.order_by(User.created_at.desc()), page, limit)
    return {**res, "items": [user_out(u) for u in res["items"]]}

@router.post("/admin/users")
def create_user(body: UserCreateIn,
                db: Session = Depends(get_db),
                me: User = Depends(require_roles("admin"))):
    email_l = body.email.strip().lower()
    if not email_l:
        raise ValidationError("email required")
    if body.role not in ROLES:
        raise ValidationError("invalid role")
    if db.query(User).filter(User.email == email_l).first():
        raise Conflict("email already exists")
    pw = body.tempPassword or (uuid.uuid4().hex[:10] + "A1!")
    u = User(
        id=str(uuid.uuid4()),
        email=email_l,
        display_name=body.displayName or "",
        role=body.role,
        specialty=body.specialty or "",
        # accounts created by an admin start approved
        is_approved=body.role == "decorator",
        password_hash=hash_password(pw),
        is_active=True,
    )
    db.add(u)
    log_audit(db, me.email, "user.created", "user", u.id, {"email": u.email, "role": u.role})
    db.commit()
    return {"ok": True, "id": u.id, "email": u.email, "tempPassword": pw}

@router.patch("/admin/users/{user_id}")
def update_user(user_id: str, body: UserPatchIn,
                db: Session = Depends(get_db),
                me: User = Depends(require_roles("admin"))):
    u = db.get(User, user_id)
    if not u:
        raise NotFound("user not found")
    if body.displayName is not None:
        u.display_name = body.displayName
    if body.specialty is not None:
        u.specialty = body.specialty
    if body.role is not None:
        if body.role not in ROLES:
            raise ValidationError("invalid role")
        u.role = body.role
    if body.isApproved is not None:
        u.is_approved = bool(body.isApproved)
    if body.isActive is not None:
        u.is_active = bool(body.isActive)
    log_audit(db, me.email, "user.updated", "user", u.id, {"role": u.role, "isApproved": u.is_approved, "isActive": u.is_active})
    db.commit()
    return user_out(u)


# -------------------------
# SERVICES
# -------------------------
@router.post("/admin/services", response_model=ServiceOut, status_code=201)
def create_service(body: ServiceIn,
                   db: Session = Depends(get_db),
                   me: User = Depends(require_roles("admin"))):
    s = Service(
        id=str(uuid.uuid4()),
        name=body.name.strip(),
        category=body.category.strip(),
        description=body.description,
        price=body.price,
        unit=body.unit,
        image=body.image,
        is_active=True,
        booking_count=0,
        created_by=me.email,
    )
    db.add(s)
    log_audit(db, me.email, "service.created", "service", s.id, {"name": s.name})
    db.commit()
    return service_out(s)


# -------------------------
# BOOKINGS
# -------------------------
@router.get("/admin/bookings")
def list_bookings(status: str | None = None, sort: str = "-createdAt", page: int = 1, limit: int | None = None,
                  svc: BookingService = Depends(get_booking_service),
                  me: User = Depends(require_roles("admin"))):
    return page_out(svc.list_all(status=status, sort=sort, page=page, limit=limit))

@router.patch("/admin/bookings/{booking_id}/assign", response_model=BookingOut)
def assign_decorator(booking_id: str, body: AssignDecoratorIn,
                     svc: BookingService = Depends(get_booking_service),
                     me: User = Depends(require_roles("admin"))):
    return booking_out(svc.assign_decorator(booking_id, body.decoratorEmail, body.decoratorName, actor=me))

@router.patch("/admin/bookings/{booking_id}/status", response_model=BookingOut)
def admin_update_status(booking_id: str, body: StatusUpdateIn,
                        svc: BookingService = Depends(get_booking_service),
                        me: User = Depends(require_roles("admin"))):
    return booking_out(svc.update_status(booking_id, body.status, actor=me))


# -------------------------
# DASHBOARD
# -------------------------
@router.get("/admin/dashboard")
def dashboard(db: Session = Depends(get_db),
              me: User = Depends(require_roles("admin"))):
    total_bookings = db.query(func.count(Booking.id)).scalar() or 0
    paid_bookings = db.query(func.count(Booking.id)).filter(Booking.is_paid == True).scalar() or 0  # noqa: E712
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).scalar()
    by_status = dict(db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all())
    top_services = (
        db.query(Service)
        .filter(Service.booking_count > 0)
        .order_by(Service.booking_count.desc())
        .limit(5)
        .all()
    )
    users_by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return {
        "totalBookings": int(total_bookings),
        "paidBookings": int(paid_bookings),
        "revenue": str(revenue or 0),
        "bookingsByStatus": {s.value: int(by_status.get(s.value, 0)) for s in BookingStatus if s != BookingStatus.CANCELLED},
        "topServices": [{"id": s.id, "name": s.name, "bookingCount": s.booking_count} for s in top_services],
        "usersByRole": {r: int(users_by_role.get(r, 0)) for r in ROLES},
    }
