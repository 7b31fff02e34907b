"""
Main FastAPI application entry point.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_migration.api import router as api_router
from catalog_migration.core.config import get_settings
from catalog_migration.core.logging import get_logger, setup_logging
from catalog_migration.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from catalog_migration.services.batch_import import BatchImportCoordinator
from catalog_migration.services.errors import ServiceRequestError, get_error_message
from catalog_migration.services.migration_client import (
    SUPPORTED_COLLECTIONS,
    MigrationServiceClient,
    PriceGuideServiceClient,
)
from catalog_migration.services.price_guide_import import PriceGuideImportCoordinator

settings = get_settings()

# Set up logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the catalog API clients and import coordinators for this process."""
    logger.info(
        f"Starting {settings.APP_NAME}",
        extra={
            "extra_fields": {
                "environment": settings.ENVIRONMENT,
                "catalog_api": settings.CATALOG_API_BASE_URL,
            }
        },
    )

    app.state.migration_clients = {
        collection: MigrationServiceClient(collection) for collection in SUPPORTED_COLLECTIONS
    }
    app.state.batch_coordinators = {
        collection: BatchImportCoordinator(client, batch_size=settings.OFFICE_IMPORT_BATCH_SIZE)
        for collection, client in app.state.migration_clients.items()
    }
    app.state.price_guide_client = PriceGuideServiceClient()
    app.state.price_guide_coordinator = PriceGuideImportCoordinator(
        app.state.price_guide_client,
        batch_size=settings.PRICE_GUIDE_IMPORT_BATCH_SIZE,
        tick_interval=settings.PROGRESS_TICK_SECONDS,
    )

    # Initialize Sentry if configured
    if settings.SENTRY_DSN:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.fastapi import FastApiIntegration
            from sentry_sdk.integrations.httpx import HttpxIntegration

            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                environment=settings.ENVIRONMENT,
                traces_sample_rate=0.1 if settings.ENVIRONMENT == "production" else 1.0,
                integrations=[
                    FastApiIntegration(transaction_style="endpoint"),
                    HttpxIntegration(),
                ],
            )
            logger.info("Sentry initialized successfully")
        except ImportError:
            logger.warning("sentry-sdk not installed, error tracking disabled")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")
    app.state.price_guide_coordinator.reset()
    for coordinator in app.state.batch_coordinators.values():
        coordinator.reset()
    for client in [*app.state.migration_clients.values(), app.state.price_guide_client]:
        await client.close()


app = FastAPI(
    title=settings.APP_NAME,
    description="Admin backend for migrating legacy offices and price guides into the catalog",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
    lifespan=lifespan,
)

# CORS middleware - must be added first (outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ServiceRequestError)
async def service_error_handler(request: Request, exc: ServiceRequestError):
    """Catalog API failures surface as a bad gateway with a readable message."""
    logger.warning(
        f"Catalog API error on {request.method} {request.url.path}: {exc.message}",
        extra={"extra_fields": {"upstream_status": exc.status_code}},
    )
    return JSONResponse(status_code=502, content={"detail": get_error_message(exc)})


@app.get("/health")
async def health_check():
    """
    Health check endpoint for load balancers and monitoring.

    Returns basic application health status.
    """
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Verifies the catalog API can reach the legacy source database.
    """
    try:
        status = await request.app.state.price_guide_client.check_source_connection()
        source_status = "connected" if status.connected else "disconnected"
    except ServiceRequestError as e:
        logger.error(f"Source connection check failed: {e.message}")
        source_status = "unreachable"

    return {
        "status": "ready" if source_status == "connected" else "not_ready",
        "checks": {
            "legacy_source": source_status,
        },
    }


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)
