"""Image search and bulk delete endpoints."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from src.api.dependencies import get_now, get_store, success
from src.api.schemas.requests import BulkDeleteRequest, SearchRequest
from src.core.document_store import DocumentStore
from src.domain.gallery import parse_timestamp
from src.services import image_service, query_engine
from src.services.snapshot_service import load_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["images"])


@router.post("/search")
def search_images(request: SearchRequest, store: DocumentStore = Depends(get_store)):
    """Filter and sort images by text, tags and creation date."""
    date_range = request.date_range
    result = query_engine.search_images(
        load_snapshot(store).images,
        query=request.query,
        tag_ids=request.tag_ids(),
        date_start=parse_timestamp(date_range.start) if date_range else None,
        date_end=parse_timestamp(date_range.end) if date_range else None,
        sort_by=request.sort_field(),
        sort_order=request.sort_order,
    )
    return success([image.to_dict() for image in result["images"]], total=result["total"])


@router.post("/images/bulk-delete")
def bulk_delete(
    request: BulkDeleteRequest,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Delete several images and their prompts."""
    return success(image_service.delete_images(store, request.image_ids, now))
