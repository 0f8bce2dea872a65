"""Schemaless document model backing every gallery collection."""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint

from src.core.database import Base


class StoredDocument(Base):
    """One document in a named collection.

    The payload is an arbitrary JSON object. Documents written by older
    clients may lack fields or carry them in a different shape; readers
    normalize on load rather than relying on a schema here.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
    )

    id = Column(Integer, primary_key=True)
    collection = Column(String(64), nullable=False, index=True)  # images, prompts, tags, tagCategories
    doc_id = Column(String(64), nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StoredDocument(collection='{self.collection}', doc_id='{self.doc_id}')>"
