"""
Engine and session management for the bundled SQLite store.

The Sql* stores reach the database only through session_scope(). Tests
replace get_session_factory() with one bound to an in-memory engine.

SQLite connections are opened with foreign keys enforced and WAL journaling
so the concurrent reads of a refetch do not block each other.
"""

from contextlib import contextmanager
import logging
from typing import Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.base import Base
from ..utils.config import get_config

logger = logging.getLogger(__name__)

# Tables a usable store must have
REQUIRED_TABLES = (
    "base_items",
    "items",
    "recipe_lines",
    "item_cost_breakdowns",
    "validation_settings",
    "resource_shares",
)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on every new connection.

    Recipe lines reference their parent and child items, so foreign keys
    must be enforced on each connection, not once per database.
    """
    cursor = dbapi_connection.cursor()

    # Deleting an item still referenced by a line must fail
    cursor.execute("PRAGMA foreign_keys=ON")

    # Readers do not block the line batch writer
    cursor.execute("PRAGMA journal_mode=WAL")

    cursor.execute("PRAGMA synchronous=NORMAL")

    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create an engine for ``database_url`` (the configured file by default).

    Connections may be used from the refetch worker threads, so the SQLite
    same-thread check is off. In-memory URLs share a single connection.

    Args:
        database_url: Optional database URL. If None, uses the configured file
        echo: If True, log all SQL statements

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        config = get_config()
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Create any missing tables.

    Safe to call repeatedly; existing tables are left untouched.

    Args:
        engine: Optional engine to use. If None, uses the global engine.
    """
    if engine is None:
        engine = get_engine()

    # Registers every table on Base.metadata
    from ..models import cost_breakdown, item, recipe_line, settings  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Database tables initialized")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the process-wide database engine, creating it on first use.

    Args:
        force_recreate: If True, recreate the engine even if one exists

    Returns:
        Database engine
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    """
    Get the process-wide session factory.

    Sessions do not expire on commit, so rows read inside session_scope()
    can still be turned into DTOs after it closes.

    Returns:
        Session factory (sessionmaker)
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _SessionFactory


def get_session() -> Session:
    """
    Create a new database session.

    Callers outside this module should prefer session_scope(), which
    owns the commit and the rollback.

    Returns:
        New Session instance
    """
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    One transaction: commit on success, roll back on any exception.

    A recipe line batch runs inside a single scope, which is what makes it
    all-or-nothing.

    Example:
        with session_scope() as session:
            session.add(Item(name="Soy Sauce", item_kind="raw"))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def missing_tables() -> list:
    """Required tables absent from the current database."""
    existing = set(inspect(get_engine()).get_table_names())
    return [table for table in REQUIRED_TABLES if table not in existing]


def verify_database() -> bool:
    """True when the database is reachable and has every required table."""
    try:
        missing = missing_tables()
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False
    if missing:
        logger.warning(f"Database is missing tables: {', '.join(missing)}")
        return False
    return True


def close_connections() -> None:
    """
    Dispose of the engine and forget the session factory.

    The next get_engine() call builds a new engine from the current
    configuration. Tests call this between database files.
    """
    global _engine, _SessionFactory

    _SessionFactory = None
    if _engine is not None:
        _engine.dispose()
        _engine = None
        logger.info("Database connections closed")


def initialize_app_database() -> bool:
    """
    Open (or create) the configured database and make sure its tables exist.

    Returns:
        Result of verify_database()
    """
    config = get_config()
    if config.database_exists():
        logger.info(f"Using existing database at: {config.database_path}")
    else:
        logger.info(f"Creating new database at: {config.database_path}")

    init_database(get_engine())
    return verify_database()
