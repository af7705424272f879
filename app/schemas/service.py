from decimal import Decimal
from pydantic import BaseModel, Field

from app.models.service import Service

class ServiceIn(BaseModel):
    name: str = Field(min_length=1)
    category: str = ""
    description: str = ""
    price: Decimal = Field(default=Decimal("0"), ge=0)
    unit: str = ""
    image: str = ""

class ServiceOut(BaseModel):
    id: str
    name: str
    category: str
    description: str
    price: str
    unit: str
    image: str
    isActive: bool
    bookingCount: int
    createdAt: str


def service_out(s: Service) -> ServiceOut:
    return ServiceOut(
        id=s.id,
        name=s.name,
        category=s.category or "",
        description=s.description or "",
        price=str(s.price if s.price is not None else 0),
        unit=s.unit or "",
        image=s.image or "",
        isActive=bool(s.is_active),
        bookingCount=int(s.booking_count or 0),
        createdAt=s.created_at.isoformat(),
    )
