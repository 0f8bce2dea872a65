"""Database models."""

from src.database.models.document import StoredDocument

__all__ = [
    "StoredDocument",
]
