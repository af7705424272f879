from collections.abc import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.core.config import settings


class Base(DeclarativeBase):
    pass


class Database:
    """Engine + session factory. Created by the process entry point, disposed on shutdown."""

    def __init__(self, url: str, **engine_kwargs):
        if url.startswith("postgresql"):
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine_kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT_SECONDS)
            engine_kwargs.setdefault(
                "connect_args",
                {"options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"},
            )
        self.engine: Engine = create_engine(url, **engine_kwargs)
        if url.startswith("sqlite"):
            _enable_sqlite_savepoints(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)

    def session(self) -> Session:
        return self.SessionLocal()

    def sessions(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        # Alembic owns the schema in deployments; this is for tests and local sqlite.
        from app.models import audit_log, booking, payment, service, user  # noqa: F401
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_database() -> Database:
    return Database(settings.DATABASE_URL)
