"""Image encoding migration endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from src.api.dependencies import get_app_settings, get_now, get_store, success
from src.api.schemas.requests import MigrateImagesRequest
from src.config.settings import AppSettings
from src.core.document_store import DocumentStore
from src.services import encoding_migrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/migrate-images", tags=["migration"])


@router.post("")
def migrate_images(
    request: MigrateImagesRequest,
    store: DocumentStore = Depends(get_store),
    settings: AppSettings = Depends(get_app_settings),
    now: datetime = Depends(get_now),
):
    """Migrate inline payloads to the canonical codec (dry-run by default)."""
    stats = encoding_migrator.migrate_images(
        store,
        now,
        dry_run=request.dry_run,
        codec=settings.migration.canonical_codec,
        quality=settings.migration.quality,
        dry_run_ratio=settings.migration.dry_run_ratio,
    )
    return success(dryRun=request.dry_run, stats=stats)


@router.get("")
def migration_status(store: DocumentStore = Depends(get_store)):
    """Count images per payload codec without changing anything."""
    return success(stats=encoding_migrator.migration_status(store))
