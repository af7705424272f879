import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_current_user, get_payment_service, require_roles
from app.core.config import settings
from app.models.user import User
from app.schemas.payments import (
    CheckoutSessionOut,
    CheckoutSessionRequest,
    SettlementOut,
    VerifyPaymentRequest,
    payment_out,
)
from app.services.payment_service import PaymentService
from app.services.stripe_client import WebhookError, construct_webhook_event, load_event

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


@router.post("/payments/checkout-session", response_model=CheckoutSessionOut)
def create_checkout_session(body: CheckoutSessionRequest,
                            svc: PaymentService = Depends(get_payment_service),
                            me: User = Depends(get_current_user)):
    return svc.create_checkout_intent(body.bookingId, body.amount, body.serviceName, me.email)


@router.post("/payments/verify", response_model=SettlementOut)
def verify_payment(body: VerifyPaymentRequest,
                   svc: PaymentService = Depends(get_payment_service),
                   me: User = Depends(get_current_user)):
    """Called by the client after the checkout redirect. Safe to call repeatedly."""
    return svc.verify_and_settle(body.sessionId, body.bookingId, actor=me)


@router.get("/payments/mine")
def my_payments(svc: PaymentService = Depends(get_payment_service),
                me: User = Depends(get_current_user)):
    return [payment_out(p) for p in svc.list_for_user(me.email)]


@router.get("/decorator/earnings")
def decorator_earnings(svc: PaymentService = Depends(get_payment_service),
                       me: User = Depends(require_roles("decorator"))):
    res = svc.list_for_decorator(me.email)
    return {
        "items": [payment_out(p) for p in res["items"]],
        "count": res["count"],
        "totalEarnings": str(res["totalEarnings"]),
    }


@router.get("/admin/payments")
def all_payments(svc: PaymentService = Depends(get_payment_service),
                 me: User = Depends(require_roles("admin"))):
    return [payment_out(p) for p in svc.list_all()]


@router.post("/admin/payments/reconcile")
def reconcile_payments(svc: PaymentService = Depends(get_payment_service),
                       me: User = Depends(require_roles("admin"))):
    return svc.reconcile()


@router.post("/webhooks/stripe")
async def stripe_webhook(req: Request, svc: PaymentService = Depends(get_payment_service)):
    body = await req.body()
    try:
        if settings.STRIPE_WEBHOOK_VERIFY:
            event = construct_webhook_event(
                body,
                req.headers.get("stripe-signature", ""),
                settings.STRIPE_WEBHOOK_SECRET,
                tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        else:
            event = load_event(body)
    except WebhookError as e:
        logger.warning("stripe webhook rejected: %s", e)
        raise HTTPException(status_code=e.status_code, detail=str(e))
    logger.info("stripe webhook %s (%s)", event.get("id"), event.get("type"))
    return await run_in_threadpool(svc.handle_webhook_event, event)
