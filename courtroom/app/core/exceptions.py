"""
Custom exception classes for the court session service.

This module defines the exception hierarchy that provides:
- Domain-specific exceptions for court session and chat handling
- HTTP status code mapping for API responses
- Structured error information with context
"""

import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """
    Standardized error codes for the court session service.

    These codes give clients a stable identifier independent of the
    human readable message.
    """

    # Database Errors (2xxx)
    DATABASE_CONNECTION_ERROR = "2001"
    DATABASE_OPERATION_FAILED = "2002"
    DATABASE_TIMEOUT = "2004"

    # Court Session Errors (4xxx)
    SESSION_NOT_FOUND = "4001"
    SESSION_INVALID_STATE = "4004"
    SESSION_VERSION_CONFLICT = "4006"
    DOCKET_ENTRY_NOT_FOUND = "4007"
    CASE_NOT_FOUND = "4008"

    # Chat Errors (5xxx)
    CHAT_MESSAGE_INVALID = "5001"

    # Validation Errors (6xxx)
    VALIDATION_FAILED = "6001"
    INVALID_IDENTIFIER = "6002"

    # Resource Errors (9xxx)
    RESOURCE_UNAVAILABLE = "9003"
    RESOURCE_TIMEOUT = "9005"


class BaseCustomException(Exception):
    """
    Base exception class for all custom exceptions in the service.

    Provides common functionality for error tracking, context preservation,
    and structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        http_status_code: int = 500,
        correlation_id: Optional[str] = None,
        user_message: Optional[str] = None
    ):
        """
        Initialize base exception with structured error information.

        Args:
            message: Technical error message for developers
            error_code: Standardized error code for identification
            details: Additional context and debugging information
            http_status_code: HTTP status code for API responses
            correlation_id: Request correlation ID for tracking
            user_message: User-friendly error message for display
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.http_status_code = http_status_code
        self.correlation_id = correlation_id
        self.user_message = user_message or self._generate_user_message()
        self.traceback_info = traceback.format_exc()

    def _generate_user_message(self) -> str:
        """Generate a user-friendly error message based on the error code."""
        user_messages = {
            ErrorCode.DATABASE_CONNECTION_ERROR: "Unable to connect to the database. Please try again later.",
            ErrorCode.DATABASE_OPERATION_FAILED: "A storage operation failed. Please try again later.",
            ErrorCode.SESSION_NOT_FOUND: "The requested court session could not be found.",
            ErrorCode.DOCKET_ENTRY_NOT_FOUND: "The case is not on this session's docket.",
            ErrorCode.SESSION_VERSION_CONFLICT: "The session was modified by another request. Reload and retry.",
            ErrorCode.RESOURCE_TIMEOUT: "The request took too long to complete.",
        }
        return user_messages.get(self.error_code, "An unexpected error occurred. Please contact support.")

    def add_context(self, key: str, value: Any) -> None:
        """Add additional context to the exception details."""
        self.details[key] = value

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"


class DatabaseError(BaseCustomException):
    """Exception raised for database-related errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_OPERATION_FAILED,
        database_type: Optional[str] = None,
        collection_name: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        details = {
            "database_type": database_type,
            "collection_name": collection_name,
            "operation": operation,
        }
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=500,
            **kwargs
        )


class SessionManagementError(BaseCustomException):
    """Exception raised for court session lifecycle errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.SESSION_NOT_FOUND,
        session_id: Optional[str] = None,
        case_id: Optional[str] = None,
        current_status: Optional[str] = None,
        **kwargs
    ):
        details = {
            "session_id": session_id,
            "case_id": case_id,
            "current_status": current_status,
        }

        status_map = {
            ErrorCode.SESSION_NOT_FOUND: 404,
            ErrorCode.DOCKET_ENTRY_NOT_FOUND: 404,
            ErrorCode.CASE_NOT_FOUND: 404,
            ErrorCode.SESSION_VERSION_CONFLICT: 409,
        }

        kwargs.setdefault("user_message", message)
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=status_map.get(error_code, 400),
            **kwargs
        )


class ResourceError(BaseCustomException):
    """Exception raised when a request exceeds its resource budget."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.RESOURCE_UNAVAILABLE,
        resource_type: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs
    ):
        details = {
            "resource_type": resource_type,
            "timeout_seconds": timeout_seconds,
        }

        status_map = {
            ErrorCode.RESOURCE_TIMEOUT: 504,
            ErrorCode.RESOURCE_UNAVAILABLE: 503,
        }

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=status_map.get(error_code, 503),
            **kwargs
        )


class ValidationError(BaseCustomException):
    """Exception raised for malformed identifiers and request data."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        field_errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ):
        details = {
            "field_errors": field_errors or [],
        }
        kwargs.setdefault("user_message", message)
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            http_status_code=400,
            **kwargs
        )


def is_retryable_error(error: Exception) -> bool:
    """
    Determine if an error is retryable based on its type and code.

    Validation and state errors are terminal; only transient storage and
    resource failures are worth another attempt by the caller.
    """
    if isinstance(error, BaseCustomException):
        retryable_codes = {
            ErrorCode.DATABASE_CONNECTION_ERROR,
            ErrorCode.DATABASE_TIMEOUT,
            ErrorCode.RESOURCE_UNAVAILABLE,
            ErrorCode.RESOURCE_TIMEOUT,
            ErrorCode.SESSION_VERSION_CONFLICT,
        }
        return error.error_code in retryable_codes

    return isinstance(error, (ConnectionError, TimeoutError))


def get_exception_response_data(exception: BaseCustomException) -> Dict[str, Any]:
    """
    Extract response data from a custom exception for API responses.

    Args:
        exception: Custom exception instance

    Returns:
        Dictionary containing structured error data
    """
    return {
        "success": False,
        "error": {
            "code": exception.error_code.value,
            "message": exception.user_message,
            "details": exception.details,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "correlation_id": exception.correlation_id,
    }


# Convenience functions for common exception patterns

def raise_database_error(
    message: str,
    database_type: Optional[str] = None,
    operation: Optional[str] = None,
    collection_name: Optional[str] = None,
    error_code: ErrorCode = ErrorCode.DATABASE_OPERATION_FAILED
) -> None:
    """Raise a database error with context."""
    raise DatabaseError(
        message=message,
        database_type=database_type,
        operation=operation,
        collection_name=collection_name,
        error_code=error_code
    )


def raise_validation_error(
    message: str,
    field: Optional[str] = None,
    value: Optional[Any] = None,
    error_code: ErrorCode = ErrorCode.VALIDATION_FAILED
) -> None:
    """Raise a validation error for a single field."""
    field_errors = []
    if field:
        field_errors.append({"field": field, "value": str(value) if value is not None else None})
    raise ValidationError(message=message, error_code=error_code, field_errors=field_errors)


def raise_session_not_found(session_id: str) -> None:
    """Raise a session not found error."""
    raise SessionManagementError(
        message=f"court session not found: {session_id}",
        error_code=ErrorCode.SESSION_NOT_FOUND,
        session_id=session_id
    )


def raise_docket_entry_not_found(session_id: str, case_id: str) -> None:
    """Raise an error for a case that is not on the session's docket."""
    raise SessionManagementError(
        message=f"case {case_id} is not on the docket of session {session_id}",
        error_code=ErrorCode.DOCKET_ENTRY_NOT_FOUND,
        session_id=session_id,
        case_id=case_id
    )


def raise_invalid_session_state(
    session_id: str,
    current_status: str,
    message: str
) -> None:
    """Raise an error for an operation not allowed in the session's status."""
    raise SessionManagementError(
        message=message,
        error_code=ErrorCode.SESSION_INVALID_STATE,
        session_id=session_id,
        current_status=current_status
    )


def raise_version_conflict(session_id: str, expected_version: int) -> None:
    """Raise an error for a write that lost an optimistic concurrency race."""
    error = SessionManagementError(
        message=f"court session {session_id} was modified concurrently",
        error_code=ErrorCode.SESSION_VERSION_CONFLICT,
        session_id=session_id
    )
    error.add_context("expected_version", expected_version)
    raise error


def raise_timeout_error(operation: str, timeout_seconds: float) -> None:
    """Raise a resource error for an operation that exceeded its deadline."""
    raise ResourceError(
        message=f"{operation} timed out after {timeout_seconds}s",
        error_code=ErrorCode.RESOURCE_TIMEOUT,
        resource_type="request_deadline",
        timeout_seconds=timeout_seconds
    )
