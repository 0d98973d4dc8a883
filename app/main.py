"""
FastAPI Application Entry Point

Catalog Resolution Service - read-only catalog API.
Serves restaurant catalogs from the in-memory source (development) or
PostgreSQL (staging/production).

Endpoints:
    - GET /: Navigation links
    - GET /health: System health check
    - GET /api/catalog: Catalogs of every restaurant
    - GET /api/catalog/{restaurant_id}: Catalog of one restaurant
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import get_settings, setup_logging
from app.schemas import CatalogQuery, ErrorResponse, HealthResponse, NotFoundResponse
from app.services.catalog import CatalogService, get_catalog_assembler

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.use_real_services:
        from app.database import init_db

        await init_db()
        logger.info("Database initialized")

        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    assembler = get_catalog_assembler()
    logger.info(f"Catalog Source: {assembler.source.provider_name}")

    logger.info("=" * 60)
    logger.info("Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    if settings.use_real_services:
        from app.database import engine

        await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Resolves restaurant catalogs per branch: tax precedence, branch "
        "price and availability overrides, option overrides and combo opt-ins."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_catalog_service() -> CatalogService:
    """Dependency returning the configured catalog assembler."""
    return get_catalog_assembler()


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "docs": "/docs",
        "catalog": "/api/catalog",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    catalog: CatalogService = Depends(get_catalog_service),
) -> HealthResponse:
    """Verify the catalog source (and cache, when enabled) are operational."""
    source_status = "healthy" if await catalog.source.health_check() else "unhealthy"

    cache_status = await catalog.cache_status()

    overall = "operational" if source_status == "healthy" and cache_status in ("healthy", "disabled") else "degraded"

    return HealthResponse(
        status=overall,
        version=settings.app_version,
        environment=settings.env_mode.value,
        catalog_source=source_status,
        provider=catalog.source.provider_name,
        cache=cache_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get(
    "/api/catalog",
    tags=["Catalog"],
    summary="List Restaurant Catalogs",
)
async def list_catalogs(
    branch_id: Optional[str] = Query(None, description="Only include this branch"),
    search: Optional[str] = Query(None, max_length=200),
    category_id: Optional[str] = Query(None),
    catalog: CatalogService = Depends(get_catalog_service),
) -> dict[str, Any]:
    """Catalogs of every restaurant plus a flat list of their products."""
    return await catalog.list_restaurant_catalog(
        branch_id=branch_id or None,
        search=search or None,
        category_id=category_id or None,
    )


@app.get(
    "/api/catalog/{restaurant_id}",
    responses={404: {"model": NotFoundResponse}, 500: {"model": ErrorResponse}},
    tags=["Catalog"],
    summary="Get Restaurant Catalog",
)
async def get_catalog(
    restaurant_id: str,
    branch_id: Optional[str] = Query(None, description="Only include this branch"),
    search: Optional[str] = Query(None, max_length=200),
    category_id: Optional[str] = Query(None),
    version: Optional[str] = Query(None, max_length=64, description="Catalog version (cache key)"),
    as_of: Optional[datetime] = Query(None, description="Reference time for tax windows"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Any:
    """
    Resolve the catalog of one restaurant.

    Returns 404 when the restaurant does not exist.
    """
    query = CatalogQuery(
        restaurant_id=restaurant_id,
        branch_id=branch_id,
        search=search,
        category_id=category_id,
        version=version,
    )

    document = await catalog.get_restaurant_catalog(
        query.restaurant_id,
        branch_id=query.branch_id,
        search=query.search,
        category_id=query.category_id,
        as_of=as_of,
        version=query.version,
    )

    if document is None:
        return JSONResponse(status_code=404, content=NotFoundResponse().model_dump())
    return document


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal Server Error",
            detail=str(exc) if settings.debug else "An unexpected error occurred",
        ).model_dump(),
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
