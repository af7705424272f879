"""
Domain errors raised by the booking and payment services.

Each kind maps to one HTTP status and renders as
``{"error": <kind>, "message": <text>, "retryable": <bool>}``.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)


class DomainError(Exception):
    kind = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str = ""):
        self.message = message or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, "retryable": self.retryable}


class NotFound(DomainError):
    kind = "not_found"
    status_code = 404


class Forbidden(DomainError):
    kind = "forbidden"
    status_code = 403


class Conflict(DomainError):
    kind = "conflict"
    status_code = 409


class ValidationError(DomainError):
    kind = "validation_error"
    status_code = 400


class UpstreamError(DomainError):
    """Store or payment provider failed or timed out. Safe to retry."""
    kind = "upstream_error"
    status_code = 502
    retryable = True


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(OperationalError)
    @app.exception_handler(PoolTimeoutError)
    async def _store_unavailable(request: Request, exc: Exception):
        logger.error("database unavailable on %s %s: %s", request.method, request.url.path, exc)
        err = UpstreamError("Database unavailable, try again")
        return JSONResponse(status_code=503, content=err.to_dict())
