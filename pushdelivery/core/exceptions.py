"""
Custom Exception Classes for the Application
Provides a unified error handling system with proper HTTP status codes and messages.

Taxonomy:
- Validation errors (400): rejected before any network call, never retried.
- Not-found errors (404): carry the requested identifier for diagnosis.
- Infrastructure errors (500/504): directory or gateway trouble; the caller owns retries.
- Prune failures: internal only, logged by the service and never rendered.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """
    Base exception class for all application exceptions.
    Provides consistent error response format.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "error_code": error_code,
                "message": message,
                "details": self.details,
            },
            headers=headers,
        )


# ==================== Validation Exceptions ====================


class ValidationException(AppException):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: str = "validation_error",
    ):
        details = {}
        if field:
            details["field"] = field

        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            message=message,
            details=details,
        )


class InvalidPayloadException(ValidationException):
    """Raised when notification content is blank or cannot be encoded for the gateway."""

    def __init__(self, field: Optional[str] = None, message: Optional[str] = None):
        super().__init__(
            message=message or f"Notification {field} must not be empty",
            field=field,
            error_code="invalid_payload",
        )


class InvalidRecipientException(ValidationException):
    """Raised when the recipient identifier is blank after trimming."""

    def __init__(self):
        super().__init__(
            message="Recipient identifier must not be empty",
            field="receiverId",
            error_code="invalid_recipient",
        )


# ==================== Resource Exceptions ====================


class ResourceNotFoundException(AppException):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[Any] = None,
        error_code: str = "resource_not_found",
    ):
        details = {}
        if identifier is not None:
            details["identifier"] = str(identifier)

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code=error_code,
            message=f"{resource} not found",
            details=details,
        )


class RecipientNotFoundException(ResourceNotFoundException):
    """Raised when the recipient is unknown to the user directory."""

    def __init__(self, requested_id: str):
        self.requested_id = requested_id
        super().__init__("Recipient", error_code="recipient_not_found")
        self.details["requestedId"] = requested_id


# ==================== Infrastructure Exceptions ====================


class PushInfrastructureException(AppException):
    """Base class for directory/gateway failures; the caller owns the retry policy."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        super().__init__(
            status_code=status_code,
            error_code=error_code,
            message=message,
            details=details,
        )


class DispatchUnavailableException(PushInfrastructureException):
    """Raised when the batch call to the push gateway cannot be attempted at all."""

    def __init__(self, reason: str, service_name: str = "fcm"):
        super().__init__(
            error_code="dispatch_unavailable",
            message="Push gateway is currently unavailable",
            details={"service": service_name, "reason": reason},
        )


class DirectoryUnavailableException(PushInfrastructureException):
    """Raised when the recipient directory cannot be queried (not when a record is missing)."""

    def __init__(self, reason: str):
        super().__init__(
            error_code="directory_unavailable",
            message="Recipient directory is currently unavailable",
            details={"service": "directory", "reason": reason},
        )


class PushTimeoutException(PushInfrastructureException):
    """Raised when resolution or dispatch exceeds its deadline."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(
            error_code="push_timeout",
            message=f"Timed out during {stage}",
            details={"stage": stage, "timeout_seconds": timeout},
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        )


class TokenPruneException(Exception):
    """Raised by the pruner when dead tokens could not be removed from the store."""

    def __init__(self, recipient_id: str, reason: str):
        self.recipient_id = recipient_id
        self.reason = reason
        super().__init__(f"Failed to prune tokens for {recipient_id}: {reason}")

