from collections.abc import Iterator

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.errors import Forbidden
from app.core.security import TokenError, decode_token
from app.models.user import User
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentService
from app.services.service_counter import ServiceCounter

bearer = HTTPBearer(auto_error=False)

def get_db(request: Request) -> Iterator[Session]:
    yield from request.app.state.database.sessions()

def get_payment_provider(request: Request):
    return request.app.state.payment_provider

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except TokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise Forbidden(f"Requires role: {', '.join(roles)}")
        return user
    return _guard

def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db, ServiceCounter(db))

def get_payment_service(db: Session = Depends(get_db), provider=Depends(get_payment_provider)) -> PaymentService:
    return PaymentService(db, provider)
