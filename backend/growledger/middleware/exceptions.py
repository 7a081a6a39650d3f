"""Ledger exception taxonomy and FastAPI exception handlers.

Four families, mirroring how a caller should react:

  validation    malformed input; fix the request           (InvalidWeight, ...)
  conservation  would break an invariant; adjust amounts   (InsufficientAvailableWeight, ...)
  contention    lost a race after internal retries; retry  (ContentionError, IssuanceConflict)
  persistence   store unreachable; retry later             (PersistenceError)
                store refused the write; do not retry      (ConstraintViolation)

Validation and conservation messages carry the numbers involved.
Contention and persistence messages never do.
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class GrowLedgerException(Exception):
    """Base exception for ledger errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


# ── Validation ─────────────────────────────────────────────────


class LedgerValidationError(GrowLedgerException):
    """Malformed input, rejected before the store is touched."""

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_ERROR",
        details: dict | None = None,
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class InvalidWeight(LedgerValidationError):
    def __init__(self, message: str, **numbers: float | None):
        super().__init__(message, error_code="INVALID_WEIGHT", details=numbers or None)


class InvalidStatus(LedgerValidationError):
    def __init__(self, value: str, allowed: list[str]):
        super().__init__(
            f"Unknown harvest status: {value!r} (expected one of {', '.join(allowed)})",
            error_code="INVALID_STATUS",
            details={"value": value, "allowed": allowed},
        )


class InvalidPatch(LedgerValidationError):
    def __init__(self, entity_type: str, message: str):
        super().__init__(
            f"Invalid {entity_type} update: {message}",
            error_code="INVALID_PATCH",
        )


class ScopeNotFound(LedgerValidationError):
    def __init__(self, scope_id: str):
        super().__init__(
            f"Scope not found: {scope_id}",
            error_code="SCOPE_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class EntityNotFound(LedgerValidationError):
    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            f"{entity_type.capitalize()} not found: {entity_id}",
            error_code="RESOURCE_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
        )


# ── Conservation ───────────────────────────────────────────────


class ConservationError(GrowLedgerException):
    """The request would consume more material than the harvest holds."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONSERVATION_ERROR",
        details: dict | None = None,
        status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class InsufficientAvailableWeight(ConservationError):
    def __init__(self, control_number: str, verb: str, requested: float, available: float):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot {verb} {requested:g}g from {control_number}, "
            f"only {available:g}g available",
            error_code="INSUFFICIENT_AVAILABLE_WEIGHT",
            details={"requested": requested, "available": available},
        )


class EntityInUse(ConservationError):
    """Delete refused while live records still depend on the entity."""

    def __init__(
        self,
        message: str,
        blockers: list[str],
        hint: str | None = None,
        error_code: str = "ENTITY_IN_USE",
        details: dict | None = None,
    ):
        self.blockers = blockers
        self.hint = hint
        details = {**(details or {}), "blockers": blockers}
        if hint:
            details["hint"] = hint
        super().__init__(
            message,
            error_code=error_code,
            details=details,
            status_code=status.HTTP_409_CONFLICT,
        )


class HarvestInUse(EntityInUse):
    def __init__(
        self,
        control_number: str,
        consumed: float,
        blockers: list[str],
        hint: str | None = None,
    ):
        self.consumed = consumed
        super().__init__(
            f"Cannot delete {control_number}: {consumed:g}g already consumed"
            + (f" by {', '.join(blockers)}" if blockers else ""),
            blockers,
            hint=hint,
            error_code="HARVEST_IN_USE",
            details={"consumed": consumed},
        )


# ── Contention / persistence ───────────────────────────────────


class ContentionError(GrowLedgerException):
    """A concurrent writer won every retry; the caller may try again."""

    retryable = True

    def __init__(
        self,
        message: str = "The record is being changed by someone else. Please try again.",
        error_code: str = "CONTENTION",
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code=error_code,
        )


class IssuanceConflict(ContentionError):
    def __init__(self):
        super().__init__(
            message="Could not reserve a control number. Please try again.",
            error_code="ISSUANCE_CONFLICT",
        )


class PersistenceError(GrowLedgerException):
    """The store failed; nothing from the operation was applied."""

    retryable = True

    def __init__(
        self,
        message: str = "The ledger is temporarily unavailable. Please try again.",
        error_code: str = "PERSISTENCE_ERROR",
        status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
        )


class ConstraintViolation(PersistenceError):
    """The store refused the write outright; retrying will not help."""

    retryable = False

    def __init__(self):
        super().__init__(
            message="The ledger rejected the change. Nothing was applied.",
            error_code="CONSTRAINT_VIOLATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )


# ── Response formatting ────────────────────────────────────────


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response.

    Format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
    """
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def ledger_exception_handler(
    request: Request,
    exc: GrowLedgerException,
) -> JSONResponse:
    """Handle ledger exceptions."""
    logger.warning(
        f"Ledger exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    details = dict(exc.details or {})
    if exc.retryable:
        details["retryable"] = True

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=details or None,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Handle database integrity errors that escaped the ledger."""
    logger.error(
        f"Database integrity error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)

    if "unique" in error_msg.lower():
        message = "A record with this value already exists"
        error_code = "DUPLICATE_RECORD"
    elif "foreign key" in error_msg.lower():
        message = "Referenced record does not exist"
        error_code = "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg.lower():
        message = "Required field is missing"
        error_code = "NULL_VALUE_NOT_ALLOWED"
    else:
        message = "Database constraint violation"
        error_code = "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        f"Database operational error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
        details={"retryable": True},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(GrowLedgerException, ledger_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
