from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timezone
from app.db.session import Base

class Payment(Base):
    """Settled payment. Immutable once written; never deleted."""
    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # one payment per booking; unique keys make replayed settlements collide
    booking_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    session_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    transaction_id: Mapped[str] = mapped_column(String(255), unique=True)

    provider: Mapped[str] = mapped_column(String(40), default="stripe")
    user_email: Mapped[str] = mapped_column(String(320), index=True)
    # decorator at settlement time; earnings stay with them after a reassignment
    decorator_email: Mapped[str | None] = mapped_column(String(320), index=True, nullable=True)
    service_name: Mapped[str] = mapped_column(String(200), default="")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(10), default="bdt")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
