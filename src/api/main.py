"""FastAPI application for the gallery data integrity engine.

Exposes the maintenance jobs (export/import, encoding migration, usage
reconciliation, category backfill, category management and search) over
HTTP. Every error leaves the API as ``{"success": false, "error": {...}}``.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from src.api.routes import (
    categories_router,
    export_router,
    images_router,
    migration_router,
    tags_router,
)
from src.config.settings import get_settings
from src.core.database import get_db, get_db_session, init_db
from src.core.document_store import DocumentStore
from src.core.errors import EngineError
from src.core.logging_config import configure_logging
from src.services.category_service import ensure_default_category

logger = logging.getLogger(__name__)

# Detect environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
VERSION = "2.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.format)
    logger.info(f"Starting gallery integrity engine (environment: {settings.environment})")

    init_db()
    if settings.store.bootstrap_default_category:
        with get_db_session() as db:
            ensure_default_category(DocumentStore(db), datetime.utcnow())
    yield
    logger.info("Shutting down gallery integrity engine")


# Initialize FastAPI app
app = FastAPI(
    title="Gallery Integrity Engine API",
    description="Export, import, migration and reconciliation jobs for the image gallery",
    version=VERSION,
    lifespan=lifespan,
)


def _cors_origins() -> list[str]:
    try:
        api_settings = get_settings().api
    except EngineError as e:
        logger.warning(f"Using default CORS origins: {e.message}")
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return api_settings.cors_origins if api_settings.cors_enabled else []


if ENVIRONMENT != "production" and (origins := _cors_origins()):
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": errors},
            },
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} crashed: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"},
        },
    )


# Include API routers
app.include_router(export_router)
app.include_router(migration_router)
app.include_router(tags_router)
app.include_router(categories_router)
app.include_router(images_router)


@app.get("/api/health")
def health(db: Session = Depends(get_db)):
    """Health check endpoint, including store reachability."""
    store_status = "reachable"
    try:
        DocumentStore(db).ping()
    except EngineError:
        store_status = "unreachable"

    return {
        "status": "healthy" if store_status == "reachable" else "degraded",
        "store": store_status,
        "environment": ENVIRONMENT,
        "version": VERSION,
    }


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api.host, port=settings.api.port)


if __name__ == "__main__":
    run()
