import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.service import Service

logger = logging.getLogger(__name__)


class ServiceCounter:
    """Keeps Service.booking_count in step with booking creation and cancellation.

    Both operations are single atomic UPDATE statements committed on their own.
    They are best effort: a failure is logged and never propagated, so the
    booking write that triggered it stands.
    """

    def __init__(self, db: Session):
        self.db = db

    def on_booking_created(self, service_id: str) -> bool:
        return self._apply(
            update(Service)
            .where(Service.id == service_id)
            .values(booking_count=Service.booking_count + 1),
            service_id,
            "increment",
        )

    def on_booking_cancelled(self, service_id: str) -> bool:
        return self._apply(
            update(Service)
            .where(Service.id == service_id, Service.booking_count > 0)
            .values(booking_count=Service.booking_count - 1),
            service_id,
            "decrement",
        )

    def _apply(self, stmt, service_id: str, op: str) -> bool:
        try:
            res = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("booking_count %s failed for service %s", op, service_id)
            return False
        if res.rowcount == 0:
            logger.warning("booking_count %s matched no row for service %s", op, service_id)
            return False
        return True
