"""Request schemas for the job trigger API."""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CamelModel(BaseModel):
    """Accepts both the camelCase wire names and the Python field names."""

    model_config = ConfigDict(populate_by_name=True)


class MigrateImagesRequest(CamelModel):
    """Body of POST /api/migrate-images."""

    dry_run: bool = Field(True, alias="dryRun")


class CachedImage(CamelModel):
    """Payload a client already holds, to avoid re-downloading it."""

    id: str
    data: str = Field(..., description="Base64 payload without data-URI header")
    extension: Optional[str] = None


class ExportPackageRequest(CamelModel):
    """Body of POST /api/export-package."""

    image_ids: Optional[list[str]] = Field(None, alias="imageIds")
    cached_images: Optional[list[CachedImage]] = Field(None, alias="cachedImages")


class ImportRequest(CamelModel):
    """Body of POST /api/import. The bundle itself is validated by the loader."""

    data: Any = None


class DateRange(CamelModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class SearchRequest(CamelModel):
    """Body of POST /api/search."""

    query: Optional[str] = None
    tags: list[Union[str, dict[str, Any]]] = Field(default_factory=list)
    date_range: Optional[DateRange] = Field(None, alias="dateRange")
    sort_by: Optional[str] = Field(None, alias="sortBy")
    sort: Optional[str] = None
    sort_order: str = Field("desc", alias="sortOrder")

    def tag_ids(self) -> list[str]:
        """Tag filters may arrive as identifiers or as ``{"id": ...}`` objects."""
        ids = []
        for tag in self.tags:
            if isinstance(tag, str):
                ids.append(tag)
            elif tag.get("id"):
                ids.append(str(tag["id"]))
        return ids

    def sort_field(self) -> Optional[str]:
        return self.sort_by or self.sort


class CategoryCreateRequest(CamelModel):
    """Body of POST /api/tag-categories."""

    name: Any = None
    color: Optional[str] = None
    description: Optional[str] = None
    is_default: bool = Field(False, alias="isDefault")


class CategoryUpdateRequest(CamelModel):
    """Body of PUT /api/tag-categories/{id}. Only name and color are editable."""

    name: Optional[str] = None
    color: Optional[str] = None


class BulkDeleteRequest(CamelModel):
    """Body of POST /api/images/bulk-delete."""

    image_ids: list[str] = Field(..., alias="imageIds")

    @field_validator("image_ids")
    @classmethod
    def validate_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("At least one image id is required")
        return value
