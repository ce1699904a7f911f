"""
Domain exceptions and error handlers for consistent error responses.

Every public ledger/rental operation raises one of the typed failures below.
The FastAPI handlers translate them into the standard error payload:
``{"error_code": ..., "message": ..., "details": {...}}``.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("siteledger.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for malformed or out-of-range input (non-positive amount, same-account transfer)."""

    def __init__(self, message: str, error_code: str = "ERR_VALIDATION_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class SameAccountError(ValidationError):
    """Raised when the source and destination of a transfer are the same account."""

    def __init__(self, account_id: int):
        super().__init__(
            message="Source and destination banks cannot be the same",
            error_code="ERR_SAME_ACCOUNT",
            details={"account_id": account_id}
        )


class OverLimitError(ValidationError):
    """Raised when a wage payment exceeds the payee's pending amount."""

    def __init__(self, pending: Any, requested: Any, account_id: int):
        super().__init__(
            message=f"Cannot pay more than pending amount ({pending})",
            error_code="ERR_OVER_LIMIT",
            details={
                "account_id": account_id,
                "pending": str(pending),
                "requested": str(requested)
            }
        )
        self.status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(AppException):
    """Raised when a state precondition is violated (e.g. assigning equipment already in use)."""

    def __init__(self, message: str, error_code: str = "ERR_CONFLICT_001", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ResourceBusyError(ConflictError):
    """Raised when a per-resource lock cannot be acquired in time."""

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} {resource_id} is being modified by another request, retry shortly",
            error_code="ERR_RESOURCE_BUSY",
            details={"resource": resource, "id": resource_id}
        )


class InvalidStateError(AppException):
    """Raised when a rental state-machine transition is attempted from the wrong state."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class UpstreamUnavailableError(AppException):
    """Raised when an external dependency (the attendance feed) cannot be reached."""

    def __init__(self, service: str, reason: str = None):
        super().__init__(
            message=f"{service} is unavailable",
            error_code="ERR_UPSTREAM_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"service": service, "reason": reason}
        )


class NotFoundError(AppException):
    """Raised when requested account or equipment is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
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
    error_code_map = {
        400: "ERR_BAD_REQUEST",
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
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic request validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception", extra={"path": request.url.path})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
