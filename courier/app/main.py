"""
FastAPI Application Entry Point.

This is the main application file for the Courier Transit service.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from courier.app.core.config import settings
from courier.app.core.context import build_context
from courier.app.core.observability import ObservabilityMiddleware, configure_logging
from courier.app.api.v1.router import router as api_v1_router
from courier.app.db.session import create_tables
from courier.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from courier.app.models.parcel import Parcel
from courier.app.models.tracking_event import TrackingEvent


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Builds the runtime context (DB engine, redis, HTTP client).
    2. Creates database tables.
    3. Closes every handle on shutdown.
    """
    configure_logging(settings.debug)
    context = build_context(settings)
    await create_tables(context.engine)
    app.state.context = context
    yield
    await context.aclose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Simulated real-time parcel tracking along precomputed routes",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Courier Transit API",
        "docs": "/docs",
        "health": "/health",
    }
