"""
Database Configuration and Session Management

This module handles SQLAlchemy setup with connection pooling.
The connection pool is the only state shared between requests, so every
operation opens its own session from the factory and closes it when done.

NOTE: Tenant scoping is NOT applied here. Sessions are raw; the Storage
facade (services/storage.py) is the only code allowed to query tenant
tables, and it does so through TenantScope.
"""
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from tenantcore.config import get_settings
import logging

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(
    database_url: str,
    pool_size: int = 20,
    max_overflow: int = 40,
    echo: bool = False,
) -> Engine:
    """
    Create an engine with a bounded connection pool.

    SQLite is only used for tests and local runs; it needs
    check_same_thread disabled because dependency counts run on worker threads.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,  # Verify connections before using (handles stale connections)
        echo=echo,
        connect_args=connect_args,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set connection-level configuration on new connections."""
        cursor = dbapi_connection.cursor()
        if database_url.startswith("postgresql"):
            cursor.execute("SET TIME ZONE 'UTC'")
        elif database_url.startswith("sqlite"):
            # SQLite ignores foreign keys unless asked per connection
            cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("New database connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Session factory bound to an engine.

    expire_on_commit=False lets callers read attributes of returned
    entities after the transaction that produced them has closed.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


def get_engine() -> Engine:
    """Process-wide engine, created on first use from settings."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_db_engine(
            settings.DATABASE_URL,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
            echo=settings.DEBUG,
        )
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Create all tables.

    In production, you'd use Alembic migrations instead.
    """
    # Import models so they register on Base.metadata
    import tenantcore.models  # noqa: F401

    target = engine or get_engine()
    logger.warning("init_db() called - use migrations in production!")
    Base.metadata.create_all(bind=target)


def dispose_engine() -> None:
    """Close pooled connections and forget the process-wide engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
