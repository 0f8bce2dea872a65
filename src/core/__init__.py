"""Core configuration and infrastructure."""

from src.core.database import get_db, get_db_session, init_db
from src.core.document_store import MAX_BATCH_OPS, DocumentStore, WriteBatch, commit_in_chunks
from src.core.errors import (
    ConfigurationError,
    ConflictError,
    EngineError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

__all__ = [
    # Database
    "get_db",
    "get_db_session",
    "init_db",
    # Document store
    "MAX_BATCH_OPS",
    "DocumentStore",
    "WriteBatch",
    "commit_in_chunks",
    # Errors
    "ConfigurationError",
    "ConflictError",
    "EngineError",
    "NotFoundError",
    "StoreUnavailableError",
    "ValidationError",
]
