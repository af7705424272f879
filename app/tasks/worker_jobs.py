import logging
from sqlalchemy.exc import ProgrammingError, OperationalError

from app.db.session import Database, build_database
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def reconcile_settlements(database: Database | None = None) -> dict:
    """Mark bookings paid whose Payment row exists but whose paid flag was never set.

    Settlement commits both writes together, so this only finds work after
    manual edits or partial restores. Orphaned payments are reported, not touched.
    """
    owns_db = database is None
    database = database or build_database()
    db = database.session()
    try:
        try:
            # the provider is not needed to repair from stored payments
            result = PaymentService(db, provider=None).reconcile()
        except (ProgrammingError, OperationalError):
            # DB not migrated yet or unreachable; don't crash the worker.
            db.rollback()
            logger.warning("reconcile_settlements skipped: database not ready")
            return {"skipped": True, "reason": "database_unavailable"}
        logger.info("reconcile_settlements: repaired=%d orphaned=%d", len(result["repaired"]), len(result["orphaned"]))
        return result
    finally:
        db.close()
        if owns_db:
            database.dispose()
