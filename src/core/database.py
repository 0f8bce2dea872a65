"""Database connection and session management.

The document store is persisted through SQLAlchemy. Any SQLAlchemy URL works;
SQLite is the default for local development and tests, PostgreSQL is the
usual production backend.
"""
import logging
import os
from contextlib import contextmanager
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./gallery.db"


def _get_database_url() -> str:
    """
    Determine database URL.

    Priority:
    1. DATABASE_URL environment variable (explicit override)
    2. store.database_url from config.yaml
    3. Local SQLite file

    Returns:
        Database connection URL string
    """
    explicit_url = os.getenv("DATABASE_URL")
    if explicit_url:
        return explicit_url

    try:
        from src.config.settings import get_settings

        return get_settings().store.database_url
    except Exception as e:
        logger.warning(f"Falling back to default database URL: {e}")
        return DEFAULT_DATABASE_URL


def _create_engine():
    """Create SQLAlchemy engine for the configured backend.

    Returns:
        Engine configured for the appropriate database backend
    """
    database_url = _get_database_url()
    sql_echo = os.getenv("SQL_ECHO", "false").lower() == "true"

    logger.info("Configuring database connection")

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=sql_echo,
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=sql_echo,
    )


# Create engine (lazy initialization to allow environment setup)
_engine = None


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


# Session factory (lazy initialization)
_session_local = None


def get_session_local():
    """Get or create the session factory."""
    global _session_local
    if _session_local is None:
        _session_local = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_local


# Base class for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes.
    Yields database session and ensures cleanup.
    """
    session_factory = get_session_local()
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.
    Use in standalone scripts and services.
    """
    session_factory = get_session_local()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Create all tables in the database."""
    # Register models on the metadata before create_all
    import src.database.models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
