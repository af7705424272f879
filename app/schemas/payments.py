from pydantic import BaseModel
from typing import Optional, Union

from app.models.payment import Payment


class CheckoutSessionRequest(BaseModel):
    bookingId: str
    # validated as a positive number by the service; never stored
    amount: Union[float, int, str]
    serviceName: str = ""


class CheckoutSessionOut(BaseModel):
    sessionId: str
    url: str


class VerifyPaymentRequest(BaseModel):
    sessionId: str
    bookingId: str


class SettlementOut(BaseModel):
    status: str  # settled | already_settled | declined
    bookingId: str
    isPaid: Optional[bool] = None
    paymentStatus: Optional[str] = None
    paymentId: Optional[str] = None
    transactionId: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    paidAt: Optional[str] = None


class PaymentOut(BaseModel):
    id: str
    bookingId: str
    userEmail: str
    decoratorEmail: Optional[str] = None
    serviceName: str
    amount: str
    currency: str
    transactionId: str
    sessionId: str
    createdAt: str


def payment_out(p: Payment) -> PaymentOut:
    return PaymentOut(
        id=p.id,
        bookingId=p.booking_id,
        userEmail=p.user_email,
        decoratorEmail=p.decorator_email,
        serviceName=p.service_name or "",
        amount=str(p.amount),
        currency=p.currency,
        transactionId=p.transaction_id,
        sessionId=p.session_id,
        createdAt=p.created_at.isoformat(),
    )
