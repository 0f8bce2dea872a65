"""
Pytest configuration and shared fixtures.

This module provides fixtures that are available to all test modules.
"""

import io
import os
from datetime import datetime

# Keep the app off the on-disk default database during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from PIL import Image as PILImage
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.config.settings import get_settings
from src.core.database import Base
from src.core.document_store import DocumentStore
from src.database.models import StoredDocument  # noqa: F401


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """
    Clear settings cache before each test.

    This ensures each test gets fresh settings.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="function")
def db_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def store(db_session) -> DocumentStore:
    return DocumentStore(db_session)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, 0)


# --- Test Image Generators ---

@pytest.fixture
def png_100x100() -> bytes:
    """100x100 PNG, large enough that codec choice changes the size."""
    buf = io.BytesIO()
    img = PILImage.new("RGB", (100, 100), color=(0, 128, 255))
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def jpeg_100x100() -> bytes:
    """100x100 JPEG image."""
    buf = io.BytesIO()
    img = PILImage.new("RGB", (100, 100), color=(0, 255, 0))
    img.save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def webp_10x10() -> bytes:
    """Small WEBP image, already in the canonical codec."""
    buf = io.BytesIO()
    PILImage.new("RGB", (10, 10), color=(255, 0, 0)).save(buf, format="WEBP")
    return buf.getvalue()
