# projecthub/db.py
# Database access layer supporting PostgreSQL (production) and SQLite (dev)

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, event, pool, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Connection, Engine

from projecthub import config
from projecthub.errors import Conflict, Internal, ProjectHubError, Unavailable

logger = logging.getLogger(__name__)

# Global engine, created lazily by init_engine()
_engine: Optional[Engine] = None

# Driver errors that mean "try again later" rather than a broken statement.
# Postgres SQLSTATE classes: 08 connection, 53 resources, 57 operator
# intervention (57014 is statement_timeout).
SQLITE_TRANSIENT = frozenset({"SQLITE_BUSY", "SQLITE_LOCKED", "SQLITE_CANTOPEN"})
SQLITE_TRANSIENT_MESSAGES = ("database is locked", "unable to open database", "disk i/o error")
PG_TRANSIENT_CLASSES = frozenset({"08", "53", "57"})


def _normalize_url(url: str) -> str:
    # Render/Heroku hand out postgres:// which SQLAlchemy no longer accepts
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def init_engine(url: Optional[str] = None) -> Engine:
    """
    Create the pooled engine for `url` (defaults to DATABASE_URL).
    Replaces any engine created earlier.
    """
    global _engine

    url = _normalize_url(url or config.DATABASE_URL)
    parsed = urlparse(url)
    if not parsed.scheme:
        raise ValueError(f"Invalid DATABASE_URL: {url[:20]}...")

    if _engine is not None:
        _engine.dispose()

    timeout = config.DB_TIMEOUT_SECONDS
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"timeout": timeout, "check_same_thread": False},
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        logger.info("Using SQLite (%s)", parsed.path or "memory")
    else:
        engine = create_engine(
            url,
            poolclass=pool.QueuePool,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=timeout,
            pool_pre_ping=True,  # Verify connections before use
            connect_args={
                "connect_timeout": timeout,
                "options": f"-c statement_timeout={timeout * 1000}",
            },
            echo=False,
        )
        logger.info("Using PostgreSQL (%s)", parsed.hostname)

    _engine = engine
    return engine


def get_engine() -> Engine:
    if _engine is None:
        init_engine()
    return _engine


def is_postgres() -> bool:
    return get_engine().dialect.name == "postgresql"


def _is_transient(orig: object) -> bool:
    """True when a driver OperationalError is a connection, lock or timeout problem."""
    sqlite_name = getattr(orig, "sqlite_errorname", None)
    if sqlite_name is not None:
        return sqlite_name in SQLITE_TRANSIENT or sqlite_name.startswith("SQLITE_IOERR")
    pgcode = getattr(orig, "pgcode", None) or ""
    if pgcode:
        return pgcode[:2] in PG_TRANSIENT_CLASSES
    # sqlite3 before Python 3.11 carries no error name, only the message
    message = str(orig).lower()
    return any(marker in message for marker in SQLITE_TRANSIENT_MESSAGES)


def classify_storage_error(exc: Exception) -> ProjectHubError:
    """
    Map a SQLAlchemy/DB-API error onto the API error taxonomy.
    The driver's text is kept as diagnostic detail only.
    """
    detail = f"{type(exc).__name__}: {getattr(exc, 'orig', None) or exc}"
    if isinstance(exc, sa_exc.IntegrityError):
        return Conflict("Resource conflicts with existing data", detail=detail)
    if isinstance(exc, (sa_exc.InterfaceError, sa_exc.TimeoutError)):
        return Unavailable("Storage temporarily unavailable", detail=detail)
    if isinstance(exc, sa_exc.OperationalError) and _is_transient(exc.orig):
        return Unavailable("Storage temporarily unavailable", detail=detail)
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return Unavailable("Storage connection lost", detail=detail)
    return Internal("Storage error", detail=detail)


@contextmanager
def get_db_connection() -> Iterator[Connection]:
    """
    Yield a connection inside a single transaction.
    Commits on success, rolls back on any error. Storage errors are re-raised
    as ProjectHubError subclasses; domain errors pass through untouched.
    """
    try:
        with get_engine().begin() as conn:
            yield conn
    except ProjectHubError:
        raise
    except sa_exc.SQLAlchemyError as e:
        error = classify_storage_error(e)
        logger.error("Storage error classified as %s: %s", error.code, error.detail)
        raise error from e


def ping() -> None:
    """Round-trip a trivial statement; raises Unavailable when the store is down."""
    with get_db_connection() as conn:
        conn.execute(text("SELECT 1"))


def now_iso() -> str:
    """UTC timestamp bound into statements (ISO-8601, microsecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")
