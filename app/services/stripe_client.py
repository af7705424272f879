import json
import logging
from dataclasses import dataclass, field

import stripe

logger = logging.getLogger(__name__)

@dataclass
class StripeConfig:
    secret_key: str             # sk_test_... / sk_live_...
    api_base: str = "https://api.stripe.com"
    timeout: int = 20
    currency: str = "bdt"
    max_network_retries: int = 1

class StripeError(RuntimeError):
    """Provider call failed. Carries provider detail for logs; never shown to API callers."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

class WebhookError(ValueError):
    status_code = 400

class WebhookSignatureError(WebhookError):
    status_code = 401

@dataclass
class CheckoutSession:
    session_id: str
    url: str
    payment_status: str = "unpaid"          # paid | unpaid | no_payment_required
    amount_total: int = 0                   # minor units
    currency: str = ""
    customer_email: str = ""
    transaction_ref: str = ""               # payment intent id
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data) -> "CheckoutSession":
        """Build from a stripe.checkout.Session (or the equivalent plain dict)."""
        details = data.get("customer_details") or {}
        intent = data.get("payment_intent")
        if isinstance(intent, dict):
            intent = intent.get("id")
        return cls(
            session_id=str(data.get("id") or ""),
            url=str(data.get("url") or ""),
            payment_status=str(data.get("payment_status") or "unpaid"),
            amount_total=int(data.get("amount_total") or 0),
            currency=str(data.get("currency") or ""),
            customer_email=str(data.get("customer_email") or details.get("email") or ""),
            transaction_ref=str(intent or ""),
            metadata=dict(data.get("metadata") or {}),
        )

class StripeCheckoutClient:
    """Checkout Sessions through the stripe SDK, with bounded network calls."""

    def __init__(self, cfg: StripeConfig):
        self.cfg = cfg
        stripe.api_key = cfg.secret_key
        stripe.api_base = cfg.api_base.rstrip("/")
        stripe.default_http_client = stripe.RequestsClient(timeout=cfg.timeout)
        stripe.max_network_retries = cfg.max_network_retries

    def create_checkout_session(self, *, amount_minor: int, currency: str, product_name: str,
                                success_url: str, cancel_url: str, customer_email: str,
                                metadata: dict) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": currency,
                        "unit_amount": int(amount_minor),
                        "product_data": {"name": product_name},
                    },
                    "quantity": 1,
                }],
                customer_email=customer_email,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
                api_key=self.cfg.secret_key,
            )
        except stripe.StripeError as e:
            raise StripeError(f"create checkout session failed: {e.user_message or e}", status_code=e.http_status) from e
        return CheckoutSession.from_api(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.cfg.secret_key)
        except stripe.StripeError as e:
            raise StripeError(f"retrieve checkout session {session_id} failed: {e.user_message or e}",
                              status_code=e.http_status) from e
        return CheckoutSession.from_api(session)


def load_event(payload: bytes) -> dict:
    """Parse an unverified webhook body. Only used when signature checks are switched off."""
    try:
        event = json.loads(payload.decode("utf-8") or "null")
    except (UnicodeDecodeError, ValueError):
        raise WebhookError("webhook body is not valid JSON")
    if not isinstance(event, dict):
        raise WebhookError("webhook body is not a JSON object")
    return event


def construct_webhook_event(payload: bytes, signature_header: str, secret: str, tolerance: int = 300):
    """Verify the Stripe-Signature header and return the event.

    The body shape is checked first; stripe.Webhook.construct_event expects a JSON object.
    """
    if not secret:
        raise WebhookSignatureError("webhook secret is not configured")
    load_event(payload)
    try:
        return stripe.Webhook.construct_event(payload, signature_header or "", secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(f"invalid webhook signature: {e}") from e
