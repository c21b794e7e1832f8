"""Relational store client: engine/session factory with an explicit open/close lifecycle."""

import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Database:
    """
    Store client owned by the application (or a CLI) rather than the module.

    Call open() once at process start and close() on shutdown. Sessions are
    handed out per request via session() or the get_db dependency.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open; call open() first")
        return self._engine

    def open(self) -> None:
        """Create the engine and session factory. Safe to call more than once."""
        if self._engine is not None:
            return
        kwargs: dict = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            # In-memory SQLite must share one connection across threads.
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        engine = create_engine(self.url, **kwargs)
        if self.url.startswith("sqlite"):
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        self._engine = engine
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info("Database opened: dialect=%s", engine.dialect.name)

    def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database closed")

    def session(self) -> Session:
        """Return a new ORM session; the caller closes it."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open; call open() first")
        return self._sessionmaker()

    def create_all(self) -> None:
        """Create all tables from model metadata (tests and local SQLite only; use Alembic otherwise)."""
        from uplus.models import Base

        Base.metadata.create_all(self.engine)


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_database(request: Request) -> Database:
    """Dependency: the Database attached to the running application."""
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
