import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging_config import configure_logging
from app.api.v1.api import api_router
from app.db.session import Database, build_database
from app.services.stripe_client import StripeCheckoutClient, StripeConfig

logger = logging.getLogger(__name__)


def build_payment_provider() -> StripeCheckoutClient:
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout calls will be rejected by Stripe")
    return StripeCheckoutClient(StripeConfig(
        secret_key=settings.STRIPE_SECRET_KEY,
        api_base=settings.STRIPE_API_BASE,
        timeout=settings.STRIPE_TIMEOUT_SECONDS,
        currency=settings.PAYMENT_CURRENCY,
    ))


def create_app(database: Database | None = None, payment_provider=None) -> FastAPI:
    """Build the API. The database and payment provider are created here unless injected,
    and the database is disposed when the app shuts down."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.database = database or build_database()
        app.state.payment_provider = payment_provider or build_payment_provider()
        logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)
        try:
            yield
        finally:
            app.state.database.dispose()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    # CORS: use CORS_ORIGINS from env in production; default to localhost for dev
    _default_origins = ["http://127.0.0.1:5173", "http://localhost:5173"]
    _origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/")
    def root():
        return {"message": "server is working"}

    return app


configure_logging()
app = create_app()
