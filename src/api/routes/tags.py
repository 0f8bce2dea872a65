"""Tag maintenance jobs: usage reconciliation and category backfill."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from src.api.dependencies import get_now, get_store, success
from src.core.document_store import DocumentStore
from src.services import category_service, usage_reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.post("/recalculate-usage")
def recalculate_usage(
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Recompute every tag's usage count from the images referencing it."""
    updated = usage_reconciler.recalculate_usage(store, now)
    return success(
        message=f"Recalculated usage count of {len(updated)} tags",
        updatedTags=updated,
    )


@router.post("/migrate-uncategorized")
def migrate_uncategorized(
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Assign tags without a category to the default category."""
    result = category_service.migrate_uncategorized(store, now)
    if result["migratedCount"] == 0 and result["failed"] == 0:
        message = "No uncategorized tags found"
    else:
        message = "Uncategorized tags moved to the default category"
    return success({"message": message, **result})
