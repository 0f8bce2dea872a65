"""
Tag category API endpoints.

CRUD for tag categories. Deleting a category is refused while any tag
still points at it.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from src.api.dependencies import get_now, get_store, success
from src.api.schemas.requests import CategoryCreateRequest, CategoryUpdateRequest
from src.core.document_store import DocumentStore
from src.services import category_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tag-categories", tags=["tag-categories"])


@router.get("")
def list_categories(store: DocumentStore = Depends(get_store)):
    """List categories in display order."""
    categories = category_service.list_categories(store)
    return success([category.to_dict() for category in categories], total=len(categories))


@router.post("")
def create_category(
    request: CategoryCreateRequest,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Create a category at the end of the ordering."""
    category = category_service.create_category(
        store,
        now,
        name=request.name,
        color=request.color,
        description=request.description,
        is_default=request.is_default,
    )
    return success(category.to_dict())


@router.get("/{category_id}")
def get_category(category_id: str, store: DocumentStore = Depends(get_store)):
    """Get one category by id."""
    return success(category_service.get_category(store, category_id).to_dict())


@router.put("/{category_id}")
def update_category(
    category_id: str,
    request: CategoryUpdateRequest,
    store: DocumentStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    """Rename or recolor a category."""
    category = category_service.update_category(
        store, category_id, now, name=request.name, color=request.color,
    )
    return success(category.to_dict())


@router.delete("/{category_id}")
def delete_category(category_id: str, store: DocumentStore = Depends(get_store)):
    """Delete a category that has no tags."""
    category_service.delete_category(store, category_id)
    return success()
