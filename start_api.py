#!/usr/bin/env python3
"""
Container entry point: wait for the database, apply migrations, seed demo data,
then hand the process over to uvicorn.
"""
import logging
import os
import sys

from alembic import command
from alembic.config import Config

import wait_for_db
from app.core.config import settings
from app.core.logging_config import configure_logging
from app.db.session import build_database
from app.seed import run as run_seed

logger = logging.getLogger("start_api")


def migrate() -> None:
    cfg = Config(os.path.join(os.path.dirname(os.path.abspath(__file__)), "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    command.upgrade(cfg, "head")


def seed() -> None:
    database = build_database()
    db = database.session()
    try:
        run_seed(db)
    finally:
        db.close()
        database.dispose()


def main() -> None:
    configure_logging()
    wait_for_db.wait()
    migrate()
    logger.info("migrations applied")
    seed()
    port = os.getenv("PORT", "8000")
    logger.info("starting uvicorn on port %s", port)
    os.execv(sys.executable, [sys.executable, "-m", "uvicorn", "app.main:app", "--host", "0.0.0.0", "--port", port])


if __name__ == "__main__":
    main()
