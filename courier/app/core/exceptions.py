"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("courier.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidTrackingCodeError(AppException):
    """Raised when a tracking code is missing or malformed."""

    def __init__(self, code: str = None):
        super().__init__(
            message="Invalid or missing tracking code",
            error_code="ERR_TRACKING_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"tracking_code": code}
        )


class RouteAlreadyPresentError(AppException):
    """Raised when repairing a parcel that already has a route."""

    def __init__(self, tracking_code: str):
        super().__init__(
            message=f"Parcel {tracking_code} already has a route",
            error_code="ERR_ROUTE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"tracking_code": tracking_code}
        )


class GeocodingFailedError(AppException):
    """Raised when an address cannot be resolved on an explicit repair request."""

    def __init__(self, origin_resolved: bool, destination_resolved: bool):
        super().__init__(
            message="Geocoding failed",
            error_code="ERR_GEOCODE_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={
                "origin_resolved": origin_resolved,
                "destination_resolved": destination_resolved,
            }
        )


class StorageUnavailableError(AppException):
    """Raised when the parcel store cannot be reached before any parcel is touched."""

    def __init__(self, message: str = "Parcel storage unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_STORAGE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class TickForbiddenError(AppException):
    """Raised when a reconcile tick is triggered without the shared token."""

    def __init__(self):
        super().__init__(
            message="Invalid tick token",
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_403_FORBIDDEN
        )


class ProviderUnavailableError(Exception):
    """
    Raised by the geo provider when an external call fails or times out.

    Always recovered locally (route fallback or placeholder label),
    never surfaced through the API.
    """
    pass


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError instance
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
