"""FastAPI dependencies shared by the job routes."""
from datetime import datetime

from fastapi import Depends
from sqlalchemy.orm import Session

from src.config.settings import AppSettings, get_settings
from src.core.database import get_db
from src.core.document_store import DocumentStore


def get_app_settings() -> AppSettings:
    return get_settings()


def get_store(
    db: Session = Depends(get_db),
    settings: AppSettings = Depends(get_app_settings),
) -> DocumentStore:
    """Document store bound to the request's database session."""
    return DocumentStore(db, max_batch_ops=settings.store.max_batch_ops)


def get_now() -> datetime:
    """Timestamp handed to every mutating job for this request."""
    return datetime.utcnow()


def success(data=None, **extra) -> dict:
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body
