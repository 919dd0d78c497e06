# pyright: reportMissingTypeStubs=false
"""
Reservation Backend API

A FastAPI application for reserving shared institutional resources:
projectors, speakers, the auditorium (by time slot) and laboratories.

Features:
- Capacity-limited and exclusive admissions, race-safe at the store
- Cancellation by owners and administrators
- Admin-managed resource catalog
- Change events over WebSocket for live availability
"""

import logging
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import catalog, changes, reservations
from core.constants import CORS_ORIGINS
from core.database import create_tables, get_db_context
from core.exceptions import ReservationError
from services.catalog_service import CatalogService
from services.notification_service import shutdown_notification_executor

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("📅 Reservation API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Reservation Backend API")

    create_tables()
    with get_db_context() as db:
        seeded = CatalogService.seed_default_kinds(db)
    if seeded:
        logger.info(f"✅ Seeded resource kinds: {', '.join(p.kind for p in seeded)}")

    yield

    shutdown_notification_executor()
    logger.info("🛑 Shutting down Reservation Backend API")


# Create FastAPI application
app = FastAPI(
    title="Reservation Backend",
    description="Institutional resource reservations with race-safe admission",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    reservations.router,
    prefix="/api",
    tags=["reservations"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        422: {"description": "Missing or invalid input"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    catalog.router,
    prefix="/api",
    tags=["catalog"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    changes.router,
    prefix="/api",
    tags=["changes"],
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Reservation Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    """Render a rejected reservation request with the policy it violated."""
    logger.info(f"{exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def http_status_error_handler(request: Request, exc: httpx.HTTPStatusError):
    """Handle HTTP status errors from external services."""
    logger.exception(f"External service error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "External service error", "type": "external_service_error"},
    )
