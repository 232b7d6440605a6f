"""Authorization exceptions and handlers for consistent error responses.

Every denial kind maps to a stable machine-readable code plus a human
message.  Internal detail (driver errors, connection strings) is logged,
never returned.
"""

import logging
import traceback
from typing import Iterable, Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class WMSException(Exception):
    """Base exception for WMS application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class AuthenticationRequired(WMSException):
    """No resolvable user identity."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_REQUIRED",
        )


class PermissionDenied(WMSException):
    """Effective access level for a capability is insufficient."""

    def __init__(self, capability: str, message: str | None = None):
        self.capability = capability
        super().__init__(
            message=message or f"Missing required permission: {capability}",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class RoleDenied(WMSException):
    """None (or not all) of the required roles are held."""

    def __init__(self, roles: Iterable[str], match_all: bool = False):
        self.roles = sorted(roles)
        scope = "all" if match_all else "one"
        super().__init__(
            message=f"Requires {scope} of: {', '.join(self.roles)}",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="ROLE_DENIED",
        )


class WarehouseAccessDenied(WMSException):
    """Requested warehouse is outside the accessible set."""

    def __init__(self, warehouse_code: str):
        self.warehouse_code = warehouse_code
        super().__init__(
            message=f"You do not have access to warehouse {warehouse_code}",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="WAREHOUSE_ACCESS_DENIED",
        )


class DatastoreUnavailable(WMSException):
    """Role / warehouse reads failed; always treated as a denial."""

    def __init__(self, message: str = "Failed to verify permissions"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="DATASTORE_UNAVAILABLE",
        )


class ResourceNotFoundError(WMSException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


# ── Response envelope ────────────────────────────────────────

def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
    headers: dict | None = None,
) -> JSONResponse:
    """Render the envelope every client parses:

        {"error": {"code": "WAREHOUSE_ACCESS_DENIED",
                   "message": "You do not have access to warehouse UBB",
                   "details": {...}}}        # details only when present
    """
    error: dict = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error}, headers=headers)


def _request_fields(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


# ── Handlers ─────────────────────────────────────────────────

async def wms_exception_handler(request: Request, exc: WMSException) -> JSONResponse:
    """Authorization denials and other domain errors.

    Denials were already written to the audit log by the guard that raised
    them; this only records the response at debug level.
    """
    logger.debug(
        f"{exc.error_code}: {exc.message}",
        extra={"error_code": exc.error_code, **_request_fields(request)},
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationRequired) else None
    return create_error_response(exc.status_code, exc.message, exc.error_code, headers=headers)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_fields(request))
    return create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Unknown capabilities, roles or warehouse codes in a request body land here."""
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={**_request_fields(request), "errors": errors},
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        details={"errors": errors},
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Assignment writes that violate a unique, foreign key or check constraint."""
    logger.error(f"Integrity error on {request.url.path}: {exc}", extra=_request_fields(request))

    detail = str(getattr(exc, "orig", exc)).lower()
    if "unique" in detail:
        message, code = "This assignment already exists", "DUPLICATE_RECORD"
    elif "foreign key" in detail:
        message, code = "Referenced user or role does not exist", "FOREIGN_KEY_VIOLATION"
    elif "check constraint" in detail:
        message, code = "Unknown warehouse code", "CHECK_VIOLATION"
    else:
        message, code = "Database constraint violation", "INTEGRITY_ERROR"
    return create_error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, message, code)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Connection-level failures outside the context builder (which degrades on its own)."""
    logger.error(f"Datastore error on {request.url.path}: {exc}", extra=_request_fields(request))
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        DatastoreUnavailable().message,
        "DATASTORE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        extra={**_request_fields(request), "traceback": traceback.format_exc()},
        exc_info=True,
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(WMSException, wms_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
