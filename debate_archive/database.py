# Transaction Model:
# - One DB transaction per HTTP request
# - Commit happens automatically if request succeeds
# - Any exception triggers rollback
# - Routes MUST NOT call db.commit() directly
"""
Database configuration and session management.

The engine and session factory are built explicitly by build_engine() /
build_session_factory() and owned by the application instance
(app.state), never by this module. Tests and scripts construct their
own.
"""

from sqlalchemy.exc import SQLAlchemyError
import logging
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool


logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the configured store.

    SQLite gets a lock timeout, cross-thread access (TestClient runs the
    app in a worker thread) and foreign key enforcement on every
    connection. In-memory SQLite shares a single connection so every
    session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {
            "connect_args": {
                "check_same_thread": False,  # Allow multi-threaded access
                "timeout": 30.0,  # Wait 30s for lock release
            },
        }
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """
            Enable foreign keys constraints on each connection.
            SQLite ignores FKs by default; ON DELETE CASCADE on votes and
            join rows depends on this.

            pysqlite's own transaction handling is switched off: it defers
            BEGIN until the first write, which lets a SAVEPOINT become the
            outermost transaction and commit on RELEASE.
            """
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            # Emit BEGIN ourselves so every session transaction is a real one
            conn.exec_driver_sql("BEGIN")

        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before use
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine
    )


def get_db(request: Request):
    """
    FastAPI dependency for database sessions.

    Lifecycle:
    1. Create session from the app-owned factory
    2. Yield to endpoint
    3. Commit on success
    4. Rollback on exception
    5. Always close session
    """
    db = request.app.state.session_factory()
    try:
        yield db
        # Explicit commit (FastAPI doesn't auto-commit)
        # Only if no exception raised
        db.commit()
    except SQLAlchemyError as e:
        # Rollback on database error
        db.rollback()
        logger.error(f"Database error in request: {e}", exc_info=True)
        # Re-raise to trigger the store failure handler (500)
        raise
    except Exception:
        # Rollback on any error (even non-DB, e.g. validation or rate limit)
        db.rollback()
        raise
    finally:
        # Always close session
        db.close()
