from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager, suppress

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from trainer.config.settings import settings
from trainer.core.errors import StoreTimeoutError

# PostgreSQL SQLSTATE for a statement cancelled by statement_timeout
_QUERY_CANCELED = "57014"


def _is_postgresql(url: str) -> bool:
    lowered = url.lower()
    return "postgresql" in lowered or "postgres" in lowered


def _validate_postgresql_driver() -> None:
    """Validate PostgreSQL driver is installed when using PostgreSQL.

    Must actually import psycopg2 (find_spec is not enough) because SQLAlchemy
    will try to import it when creating the engine.
    """
    try:
        import psycopg2  # noqa: F401

        logger.info("PostgreSQL driver (psycopg2) is available")
    except ImportError as e:
        logger.error("PostgreSQL driver (psycopg2) is not installed. Install it with: pip install psycopg2-binary")
        raise ImportError("PostgreSQL driver required. Install with: pip install psycopg2-binary") from e


def _connect_args(url: str) -> dict:
    """Build driver connect args that bound every store call by the configured timeout."""
    timeout = settings.store_timeout_seconds
    if "sqlite" in url.lower():
        return {"check_same_thread": False, "timeout": timeout}
    if _is_postgresql(url):
        return {
            "connect_timeout": max(1, int(timeout)),
            "application_name": "trainer-core",
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return {}


def check_database_connection() -> None:
    """Test database connection on startup."""
    try:
        with _get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection test successful")
    except Exception as e:
        logger.error(f"Database connection test failed: {e}")
        raise


# Lazy initialization to avoid import-time database connections
_engine = None
_SessionLocal = None


def _get_engine():
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        url = settings.database_url
        logger.info(f"Initializing database engine: {url}")

        if _is_postgresql(url):
            _validate_postgresql_driver()
            logger.info("Using PostgreSQL database")
        else:
            logger.warning("Using SQLite database (local development only)")

        # SQLite pools do not accept pool_timeout; the driver busy timeout bounds them instead
        pool_args = {} if "sqlite" in url.lower() else {"pool_timeout": settings.store_timeout_seconds}
        _engine = create_engine(
            url,
            connect_args=_connect_args(url),
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
            **pool_args,
        )
        logger.info("Database engine initialized")
    return _engine


def get_engine():
    """Get or create the database engine (public API)."""
    return _get_engine()


def _get_session_local():
    """Get or create the session factory (lazy initialization)."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
        logger.info("Database session factory initialized")
    return _SessionLocal


def is_timeout_error(error: Exception) -> bool:
    """Return True when a SQLAlchemy error means the store exceeded its time bound."""
    if isinstance(error, PoolTimeoutError):
        return True
    if not isinstance(error, OperationalError):
        return False
    if getattr(error.orig, "pgcode", None) == _QUERY_CANCELED:
        return True
    message = str(error.orig).lower()
    return "timeout" in message or "database is locked" in message


def _handle_session_commit(session: Session) -> None:
    """Commit the session, including rows already flushed by repositories."""
    with suppress(Exception):
        logger.debug(f"Committing session: dirty={len(session.dirty)}, new={len(session.new)}, deleted={len(session.deleted)}")
    session.commit()


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get database session context manager.

    Commits on a clean exit and rolls back on any exception. Timeouts are
    re-raised as StoreTimeoutError; every other error propagates unchanged.
    """
    session = _get_session_local()()
    try:
        yield session
        _handle_session_commit(session)
    except (OperationalError, PoolTimeoutError) as e:
        session.rollback()
        if is_timeout_error(e):
            logger.error(f"Store operation exceeded {settings.store_timeout_seconds}s: {e}")
            raise StoreTimeoutError(f"Store operation timed out after {settings.store_timeout_seconds}s") from e
        logger.error(f"Database session error, rolling back: {e}")
        raise
    except Exception as e:
        logger.debug(f"Exception in session ({type(e).__name__}), rolling back")
        session.rollback()
        raise
    finally:
        session.close()
