"""Export and import endpoints."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from src.api.dependencies import get_app_settings, get_now, get_store, success
from src.api.schemas.requests import ExportPackageRequest, ImportRequest
from src.config.settings import AppSettings
from src.core.document_store import DocumentStore
from src.services import export_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["export"])


@router.get("/export")
def export_data(
    image_ids: Optional[list[str]] = Query(None, alias="imageIds"),
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Download the dataset, or only the images in ``imageIds``, as a versioned JSON bundle."""
    bundle = export_service.build_export_bundle(store, now, image_ids=image_ids)
    filename = export_service.export_filename(now, "json")
    return JSONResponse(
        content=bundle,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
        },
    )


@router.post("/export-package")
def export_package(
    request: ExportPackageRequest,
    store: DocumentStore = Depends(get_store),
    settings: AppSettings = Depends(get_app_settings),
    now: datetime = Depends(get_now),
):
    """Download the bundle plus image payloads as a ZIP archive."""
    archive, stats = export_service.build_export_package(
        store,
        now,
        image_ids=request.image_ids,
        cached_images=[entry.model_dump() for entry in request.cached_images or []],
        fetcher=export_service.http_fetcher(settings.export.download_timeout),
        max_workers=settings.export.max_workers,
    )
    filename = export_service.export_filename(now, "zip")
    return Response(
        content=archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-cache",
            "X-Export-Packaged": str(stats["packaged"]),
            "X-Export-Failed": str(stats["failed"]),
        },
    )


@router.post("/import")
def import_data(
    request: ImportRequest,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Replay a bundle; each image becomes a new record."""
    return success(**export_service.import_bundle(store, request.data, now))
