"""
Database configuration and session management with dual database support.
Supports SQLite (default) and PostgreSQL (optional override).
"""
import logging
import os

from sqlalchemy import event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from spacesync.core.config import settings, PROJECT_ROOT
from spacesync.core.logging_config import _sanitize_data

logger = logging.getLogger(__name__)


def _attach_sqlite_pragmas(engine: Engine, is_memory: bool) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite-specific pragma settings for concurrent chunk workers."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not is_memory:
            cursor.execute("PRAGMA journal_mode=WAL")  # Better concurrency
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA busy_timeout=30000")  # Wait for the write lock
        cursor.execute("PRAGMA temp_store=MEMORY")
        cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine tuned for the backend named in ``database_url``."""
    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        is_memory = url.database in (None, "", ":memory:")
        if not is_memory:
            os.makedirs(os.path.dirname(os.path.abspath(url.database)), exist_ok=True)
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": 30},
            poolclass=StaticPool if is_memory else None,
        )
        _attach_sqlite_pragmas(engine, is_memory)
        logger.info(f"Configured SQLite engine ({'in-memory' if is_memory else 'file-based'})")
        return engine

    if backend in {"postgres", "postgresql"}:
        engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            pool_size=20,
            max_overflow=10,
            pool_recycle=3600,  # Recycle connections every hour
        )
        logger.info("Configured PostgreSQL engine with connection pooling")
        return engine

    engine = create_engine(database_url, echo=False, pool_pre_ping=True, pool_recycle=3600)
    logger.info(f"Configured {backend} engine")
    return engine


database_url = settings.effective_database_url
database_type = settings.database_type

logger.info(f"Using {database_type} database: {_sanitize_data(database_url)}")

engine = build_engine(database_url)


@event.listens_for(engine, "before_cursor_execute")
def _log_sql_statement(conn, cursor, statement, parameters, context, executemany):
    if not settings.log_sql_requests:
        return
    compact = " ".join(statement.split())
    if len(compact) > 800:
        compact = f"{compact[:800]}..."
    logger.info("SQL statement: %s", compact)


def create_db_and_tables():
    """Create database tables using Alembic migrations."""
    skip_db_init = os.getenv("SKIP_DB_INIT", "false").lower() in ("true", "1", "yes")
    if skip_db_init:
        logger.info("Skipping database initialization (SKIP_DB_INIT is set)")
        return

    # Register table models on SQLModel.metadata
    import spacesync.models  # noqa: F401

    try:
        logger.info("Running database migrations...")
        from alembic import command
        from alembic.config import Config

        alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", database_url)

        command.upgrade(alembic_cfg, "head")
        logger.info("Database migrations completed successfully")

    except Exception as exc:
        logger.error(exc)
        # Fallback to SQLModel create_all
        try:
            logger.info("Falling back to SQLModel create_all...")
            SQLModel.metadata.create_all(engine)
            logger.info("Database tables created successfully (fallback)")
        except Exception as e:
            logger.error(e)
            raise


def get_engine() -> Engine:
    """Get the process-wide engine."""
    return engine


def get_session():
    """Get database session."""
    with Session(engine) as session:
        yield session


def init_db():
    """Initialize database with tables."""
    logger.info("Initializing database...")
    create_db_and_tables()
    logger.info("Database initialization completed")
