"""
SQLAlchemy engine and session handling for the compliance engine.

``init_db`` is called once at startup (CLI or host application); stores then
open short-lived sessions through ``get_db``.
"""

import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from compliance_engine.config import PostgresConfig
from compliance_engine.models import Base  # registers every ORM table on Base.metadata

logger = logging.getLogger(__name__)

# Declare engine and SessionLocal at module level, to be initialized by init_db
engine: Optional[Engine] = None
SessionLocal = None

SessionFactory = Callable[[], ContextManager[Session]]


@contextmanager
def get_db() -> Iterator[Session]:
    """
    Get a database session.

    Yields:
        SQLAlchemy session, closed when the context exits
    """
    if SessionLocal is None:
        logger.error("SessionLocal is not initialized. init_db may have failed or was not called.")
        raise RuntimeError("Database session factory (SessionLocal) is not initialized.")

    db = None
    try:
        db = SessionLocal()
        yield db
    finally:
        if db:
            db.close()


def session_factory_for(bind: Engine) -> SessionFactory:
    """Build a ``get_db``-style session factory bound to an explicit engine."""
    maker = sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)

    @contextmanager
    def _factory() -> Iterator[Session]:
        db = maker()
        try:
            yield db
        finally:
            db.close()

    return _factory


def init_db(pg_config: PostgresConfig) -> bool:
    """
    Initialize the database engine and verify the connection.

    Args:
        pg_config: PostgreSQL configuration object.

    Returns:
        True if initialization was successful and SessionLocal is ready, False otherwise.
    """
    global engine, SessionLocal

    if not pg_config.enabled:
        logger.warning("PostgreSQL is disabled in configuration. Skipping init_db.")
        engine = None
        SessionLocal = None
        return False

    url = pg_config.sqlalchemy_url()
    try:
        if url.startswith("sqlite"):
            current_engine = create_engine(url)
        else:
            current_engine = create_engine(
                url,
                pool_size=pg_config.pool_size,
                max_overflow=pg_config.max_overflow,
                pool_recycle=1800,
                pool_pre_ping=True,
            )

        with current_engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        engine = current_engine
        SessionLocal = scoped_session(
            sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)
        )
        logger.info(f"Database connection successful ({current_engine.url.render_as_string(hide_password=True)})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        logger.error("Database initialization error details:", exc_info=True)
        engine = None
        SessionLocal = None
        return False


def create_schema(bind: Optional[Engine] = None) -> None:
    """
    Create all tables known to the ORM metadata.

    Production schemas are managed by Alembic; this exists for local SQLite
    databases and tests.
    """
    target = bind or engine
    if target is None:
        raise RuntimeError("Database engine is not initialized.")
    Base.metadata.create_all(target)
