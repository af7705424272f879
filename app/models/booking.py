import enum
from datetime import date, datetime, timezone
from sqlalchemy import String, Boolean, Date, DateTime, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    service_id: Mapped[str] = mapped_column(String(36), index=True)
    service_name: Mapped[str] = mapped_column(String(200), default="")
    user_email: Mapped[str] = mapped_column(String(320), index=True)  # requester
    user_name: Mapped[str] = mapped_column(String(200), default="")

    decorator_email: Mapped[str | None] = mapped_column(String(320), index=True, nullable=True)
    decorator_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    booking_date: Mapped[date] = mapped_column(Date)
    location: Mapped[str] = mapped_column(String(300), default="")
    notes: Mapped[str] = mapped_column(Text, default="")

    status: Mapped[str] = mapped_column(String(20), index=True, default=BookingStatus.PENDING.value)
    status_history: Mapped[dict] = mapped_column(JSON, default=dict)  # status -> ISO timestamp, append-only

    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    payment_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
