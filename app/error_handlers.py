"""Custom error handlers and exceptions for the application."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
import traceback
from typing import Optional, Union

from .logging_config import get_logger

logger = get_logger("error_handlers")


class AppException(Exception):
    """Base exception for application-specific errors."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Union[int, str]):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class DuplicateResourceError(AppException):
    """Raised when a write would collide with an existing resource."""

    def __init__(self, resource: str, field: str, value: str, details: Optional[dict] = None):
        super().__init__(
            message=f"{resource} with {field} '{value}' already exists",
            status_code=409,
            details={"resource": resource, "field": field, "value": value, **(details or {})}
        )


class DraftValidationError(AppException):
    """Raised when a product create/update breaks business rules."""

    def __init__(self, errors: list[str]):
        super().__init__(
            message="Product validation failed",
            status_code=400,
            details={"validation_errors": errors}
        )


class ConfirmationRequiredError(AppException):
    """Raised when a near-duplicate product needs an explicit override."""

    def __init__(self, conflict: dict):
        super().__init__(
            message=conflict["message"],
            status_code=409,
            details={"conflict": conflict}
        )


class ImportInputError(AppException):
    """Raised when an uploaded import file cannot be used at all."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message=message, status_code=400, details=details)


class BatchNotFoundError(AppException):
    """Raised when a staged import batch is missing or expired."""

    def __init__(self, batch_id: str):
        super().__init__(
            message="Import batch not found or expired",
            status_code=404,
            details={"batch_id": batch_id}
        )


class ChecksumMismatchError(AppException):
    """Raised when a confirm carries a stale or wrong fingerprint."""

    def __init__(self, batch_id: str):
        super().__init__(
            message="Checksum does not match the staged batch; preview again",
            status_code=409,
            details={"batch_id": batch_id}
        )


class BatchForbiddenError(AppException):
    """Raised when someone other than the creator (or an admin) confirms."""

    def __init__(self, batch_id: str):
        super().__init__(
            message="Only the user who previewed this batch or an admin may confirm it",
            status_code=403,
            details={"batch_id": batch_id}
        )


class ImportCommitError(AppException):
    """Raised when a staged row fails re-validation; nothing was applied."""

    def __init__(self, message: str, result: dict):
        super().__init__(message=message, status_code=409, details=result)


async def app_exception_handler(request: Request, exc: AppException):
    """Handler for custom application exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application error: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details,
            "path": request.url.path
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"validation_errors": errors}
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation failed",
            "validation_errors": errors,
            "path": request.url.path
        }
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handler for SQLAlchemy database errors."""
    error_msg = "Database error occurred"

    if isinstance(exc, IntegrityError):
        error_msg = "Data integrity constraint violated"
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.error(
        f"Database error: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_msg,
            "detail": str(exc.orig) if hasattr(exc, 'orig') else str(exc),
            "path": request.url.path
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handler for unexpected exceptions."""
    logger.critical(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "traceback": traceback.format_exc()
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please contact support if the issue persists.",
            "path": request.url.path
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every handler above to the application."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
