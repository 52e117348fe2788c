"""Database helpers for the reservation store."""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = os.environ.get("AIRBOOK_DATABASE_URL", "sqlite+pysqlite:///airbook.db")

# Seconds a SQLite connection waits on a locked database before giving up.
_SQLITE_BUSY_TIMEOUT = 30


def _configure_sqlite(engine: Engine) -> None:
    """Make SQLite transactions take the write lock up front.

    SQLite has no row locks, so ``SELECT ... FOR UPDATE`` is a no-op there.
    Opening every transaction with ``BEGIN IMMEDIATE`` serializes writers
    for the whole transaction, which gives the purchase check-then-insert the
    same effect the row locks give on server databases.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Read-only transactions take the write lock too, so reads queue behind purchases.
    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(
    db_url: str = DEFAULT_DATABASE_URL,
    *,
    echo: bool = False,
    connect_args: Dict[str, object] | None = None,
) -> Tuple[Engine, sessionmaker[Session]]:
    """Return an engine/session factory pair configured for SQLite by default."""

    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        final_connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT}
        if connect_args:
            final_connect_args.update(connect_args)
    else:
        final_connect_args = connect_args or {}

    if db_url.endswith(":memory:"):
        engine = create_engine(
            db_url,
            echo=echo,
            connect_args=final_connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            db_url,
            echo=echo,
            connect_args=final_connect_args,
            pool_pre_ping=not is_sqlite,
        )
    if is_sqlite:
        _configure_sqlite(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.debug("Session factory created for %s", engine.url.render_as_string(hide_password=True))
    return engine, session_factory


def init_db(db_url: str = DEFAULT_DATABASE_URL, *, echo: bool = False) -> sessionmaker[Session]:
    """Create all tables and return a session factory."""

    engine, session_factory = create_session_factory(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations.

    The session is committed when the block exits normally and rolled back
    when it raises; it is closed either way.
    """

    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Unit of work rolled back after a database error")
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
