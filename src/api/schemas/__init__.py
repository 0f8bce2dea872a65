"""API request schemas."""

from src.api.schemas.requests import (
    BulkDeleteRequest,
    CategoryCreateRequest,
    CategoryUpdateRequest,
    ExportPackageRequest,
    ImportRequest,
    MigrateImagesRequest,
    SearchRequest,
)

__all__ = [
    "BulkDeleteRequest",
    "CategoryCreateRequest",
    "CategoryUpdateRequest",
    "ExportPackageRequest",
    "ImportRequest",
    "MigrateImagesRequest",
    "SearchRequest",
]
