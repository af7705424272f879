from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from app.api.deps import get_db
from app.core.errors import NotFound
from app.models.service import Service
from app.models.user import User
from app.schemas.auth import user_out
from app.schemas.service import ServiceOut, service_out
from app.services.pagination import paginate

router = APIRouter(tags=["public"])


def _like(q: str) -> str:
    return f"%{q.strip().lower()}%"


@router.get("/services")
def list_services(search: str = "", category: str = "", page: int = 1, limit: int | None = None,
                  db: Session = Depends(get_db)):
    """Active services, newest first. `search` matches name or category, case-insensitive."""
    query = db.query(Service).filter(Service.is_active == True)  # noqa: E712
    if search.strip():
        ql = _like(search)
        query = query.filter(or_(func.lower(Service.name).like(ql), func.lower(Service.category).like(ql)))
    if category.strip():
        query = query.filter(func.lower(Service.category) == category.strip().lower())
    res = paginate(query.order_by(Service.created_at.desc()), page, limit)
    return {**res, "items": [service_out(s) for s in res["items"]]}


@router.get("/services/{service_id}", response_model=ServiceOut)
def get_service(service_id: str, db: Session = Depends(get_db)):
    s = db.get(Service, service_id)
    if not s:
        raise NotFound("Service not found")
    return service_out(s)


@router.get("/decorators")
def list_decorators(search: str = "", db: Session = Depends(get_db)):
    """Approved decorators; `search` matches display name or specialty."""
    query = db.query(User).filter(User.role == "decorator", User.is_approved == True, User.is_active == True)  # noqa: E712
    if search.strip():
        ql = _like(search)
        query = query.filter(or_(func.lower(User.display_name).like(ql), func.lower(User.specialty).like(ql)))
    return [user_out(u) for u in query.order_by(User.display_name.asc()).all()]
