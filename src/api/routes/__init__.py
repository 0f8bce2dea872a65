"""API routes."""

from src.api.routes.categories import router as categories_router
from src.api.routes.export import router as export_router
from src.api.routes.images import router as images_router
from src.api.routes.migration import router as migration_router
from src.api.routes.tags import router as tags_router

__all__ = [
    "categories_router",
    "export_router",
    "images_router",
    "migration_router",
    "tags_router",
]
