"""
Custom exceptions and error handlers for consistent error responses.

Provides the booking error taxonomy, standardized error codes and the
global exception handlers registered on the FastAPI application.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to act on a booking."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ValidationError(AppException):
    """Raised when booking input is missing or malformed."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_ref: Any = None):
        super().__init__("Booking", booking_ref, error_code="ERR_NOT_FOUND_002")


class DriverNotFoundError(NotFoundError):
    def __init__(self, driver_id: Any = None):
        super().__init__("Driver", driver_id, error_code="ERR_NOT_FOUND_003")


class ConflictError(AppException):
    """Raised when the current state of a resource forbids the operation."""

    def __init__(self, message: str, error_code: str = "ERR_CONFLICT_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class DriverUnavailableError(ConflictError):
    def __init__(self, driver_id: int):
        super().__init__(
            message=f"Driver {driver_id} is not available",
            error_code="ERR_CONFLICT_002",
            details={"driver_id": driver_id}
        )


class BookingNotEligibleError(ConflictError):
    """Booking is unknown or not in a state that allows the transition."""

    def __init__(self, booking_id: int, reason: str):
        super().__init__(
            message=f"Booking {booking_id} is not eligible: {reason}",
            error_code="ERR_CONFLICT_003",
            details={"booking_id": booking_id, "reason": reason}
        )


class InvalidStatusError(AppException):
    """Raised when a status value is outside the booking status enum."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Invalid status provided: {value}",
            error_code="ERR_STATUS_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"status": value}
        )


class PersistenceError(AppException):
    """Raised when a store operation fails; the whole unit of work is rolled back."""

    def __init__(self, message: str = "Database operation failed", error_code: str = "ERR_STORE_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


class StoreTimeoutError(PersistenceError):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Database operation timed out after {timeout}s",
            error_code="ERR_STORE_002",
            details={"timeout_seconds": timeout}
        )


class CircuitOpenError(PersistenceError):
    def __init__(self):
        super().__init__(
            message="Database circuit is open, try again later",
            error_code="ERR_STORE_003"
        )


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
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
