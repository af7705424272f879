import logging
import os
import time

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

logger = logging.getLogger("wait_for_db")


def wait(url: str | None = None, timeout_s: int | None = None) -> None:
    """Block until the database accepts a connection, or re-raise the last error after `timeout_s`."""
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise SystemExit("DATABASE_URL is not set")
    if url.startswith("postgres://"):
        url = "postgresql+psycopg2://" + url[11:]
    timeout_s = timeout_s if timeout_s is not None else int(os.getenv("DB_WAIT_TIMEOUT", "60"))

    engine = create_engine(url, pool_pre_ping=True)
    start = time.time()
    logger.info("Waiting for database at %s (timeout=%ss)", engine.url.render_as_string(hide_password=True), timeout_s)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("Database is ready.")
                return
            except OperationalError as e:
                if time.time() - start > timeout_s:
                    logger.error("Timed out waiting for DB. Last error: %s", e)
                    raise
                time.sleep(1)
    finally:
        engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    wait()
