"""
Database connection management with connection pooling.

Engines and session factories are built explicitly (application start-up,
scripts, tests) rather than at import time, so every consumer receives the
engine it should talk to.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from core.config import settings
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str = None, **overrides) -> Engine:
    """
    Create an engine for ``database_url`` (defaults to the configured URL).

    Pool settings only apply to server databases; SQLite keeps its defaults.
    """
    url = database_url or settings.database_url
    options = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": settings.DEBUG,  # Log SQL queries in debug mode
    }
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    options.update(overrides)

    engine = create_engine(url, **options)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        logger.debug("New database connection established")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,  # Prevent lazy loading issues
    )


def init_schema(engine: Engine) -> None:
    """Create missing tables. Safe to call on every start-up."""
    # Registers the mapped tables on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

