"""
Global Exception Handlers for the Application
Provides unified error response format and logging.

Every error body carries a top-level `error` message and `details` object so event
producers can log and diagnose failures without parsing status-specific shapes.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from pushdelivery.core.exceptions import AppException

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[dict] = None,
    path: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code
        error_code: Application-specific error code
        message: Human-readable error message
        details: Additional error details
        path: Request path where error occurred
        headers: Extra response headers (e.g. `Allow` on 405)

    Returns:
        JSONResponse with standardized error format
    """
    content = {
        "success": False,
        "error": message,
        "code": error_code,
        "details": details or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if path:
        content["path"] = path

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers for the application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Handle custom application exceptions."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "AppException: %s - %s",
            exc.error_code,
            exc.message,
            extra={
                "endpoint": request.url.path,
                "method": request.method,
                "error_code": exc.error_code,
            },
        )

        return create_error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
            path=request.url.path,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Handle request validation errors (missing or blank required fields)."""
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )

        logger.warning(
            "Validation error on %s",
            request.url.path,
            extra={"endpoint": request.url.path, "method": request.method},
        )

        return create_error_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="missing_required_fields",
            message="Missing required fields",
            details={"errors": errors},
            path=request.url.path,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle framework-raised HTTP errors such as 404 routes and 405 methods."""
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            error_code = "method_not_allowed"
        elif exc.status_code == status.HTTP_404_NOT_FOUND:
            error_code = "not_found"
        else:
            error_code = "http_error"

        return create_error_response(
            status_code=exc.status_code,
            error_code=error_code,
            message=str(exc.detail),
            path=request.url.path,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors."""
        logger.error(
            "Database error: %s",
            exc,
            extra={"endpoint": request.url.path, "method": request.method},
            exc_info=True,
        )

        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="database_error",
            message="A database error occurred. Please try again later.",
            details={"error_type": type(exc).__name__},
            path=request.url.path,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions."""
        logger.error(
            "Unhandled exception: %s",
            exc,
            extra={"endpoint": request.url.path, "method": request.method},
            exc_info=True,
        )

        # Production responses never expose internals.
        message = "Internal Server Error"
        details = {}

        env = getattr(request.app.state, "environment", "production").lower()
        if env in ("development", "dev", "test"):
            message = str(exc) or message
            details = {
                "error_type": type(exc).__name__,
                "traceback": traceback.format_exc().split("\n"),
            }

        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="internal_server_error",
            message=message,
            details=details,
            path=request.url.path,
        )
