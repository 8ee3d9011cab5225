"""
Global Error Handler for the Court Session Service

Turns every exception that escapes a route into the service's JSON error
envelope:

    {
        "success": false,
        "error": {"code", "message", "details", "correlation_id",
                  "category", "severity", "retryable"},
        "timestamp": "...",
        "correlation_id": "..."
    }

Custom exceptions carry their own HTTP status. Request validation failures
(malformed bodies, bad query parameters, unparseable datetimes) are reported
as 400 Bad Request. Anything unexpected becomes a 500 whose technical
details are only included in development.
"""

import re
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from courtroom.app.core.exceptions import (
    BaseCustomException,
    ErrorCode,
    get_exception_response_data,
    is_retryable_error
)
from courtroom.app.utils.logging import get_correlation_id, get_logger
from courtroom.config.settings import Settings, get_settings


class ErrorSeverity(str, Enum):
    """Error severity levels for monitoring."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STATE = "state"
    RESOURCE = "resource"
    SYSTEM = "system"


class ErrorMetrics:
    """In-process error counters."""

    def __init__(self):
        self.total_errors = 0
        self.error_counts_by_code: Dict[str, int] = {}
        self.error_counts_by_category: Dict[str, int] = {}
        self.error_counts_by_severity: Dict[str, int] = {}
        self.last_error_time: Optional[datetime] = None

    def record_error(
        self,
        error_code: str,
        category: ErrorCategory,
        severity: ErrorSeverity
    ) -> None:
        self.total_errors += 1
        self.error_counts_by_code[error_code] = self.error_counts_by_code.get(error_code, 0) + 1
        self.error_counts_by_category[category.value] = self.error_counts_by_category.get(category.value, 0) + 1
        self.error_counts_by_severity[severity.value] = self.error_counts_by_severity.get(severity.value, 0) + 1
        self.last_error_time = datetime.now(timezone.utc)

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_errors": self.total_errors,
            "error_counts_by_code": self.error_counts_by_code,
            "error_counts_by_category": self.error_counts_by_category,
            "error_counts_by_severity": self.error_counts_by_severity,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
        }


class ErrorHandler:
    """Centralized error handling with classification and formatting."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.metrics = ErrorMetrics()
        self.is_development = (
            self.settings.environment.lower() in ("development", "dev", "local")
            or self.settings.debug
        )

        self._error_categories = self._build_error_category_mapping()
        self._error_severities = self._build_error_severity_mapping()

    def _build_error_category_mapping(self) -> Dict[str, ErrorCategory]:
        return {
            ErrorCode.VALIDATION_FAILED: ErrorCategory.VALIDATION,
            ErrorCode.INVALID_IDENTIFIER: ErrorCategory.VALIDATION,
            ErrorCode.CHAT_MESSAGE_INVALID: ErrorCategory.VALIDATION,

            ErrorCode.SESSION_NOT_FOUND: ErrorCategory.NOT_FOUND,
            ErrorCode.DOCKET_ENTRY_NOT_FOUND: ErrorCategory.NOT_FOUND,
            ErrorCode.CASE_NOT_FOUND: ErrorCategory.NOT_FOUND,

            ErrorCode.SESSION_VERSION_CONFLICT: ErrorCategory.CONFLICT,
            ErrorCode.SESSION_INVALID_STATE: ErrorCategory.STATE,

            ErrorCode.RESOURCE_UNAVAILABLE: ErrorCategory.RESOURCE,
            ErrorCode.RESOURCE_TIMEOUT: ErrorCategory.RESOURCE,

            ErrorCode.DATABASE_CONNECTION_ERROR: ErrorCategory.SYSTEM,
            ErrorCode.DATABASE_OPERATION_FAILED: ErrorCategory.SYSTEM,
            ErrorCode.DATABASE_TIMEOUT: ErrorCategory.SYSTEM,
        }

    def _build_error_severity_mapping(self) -> Dict[str, ErrorSeverity]:
        return {
            ErrorCode.DATABASE_CONNECTION_ERROR: ErrorSeverity.CRITICAL,

            ErrorCode.DATABASE_OPERATION_FAILED: ErrorSeverity.HIGH,
            ErrorCode.DATABASE_TIMEOUT: ErrorSeverity.HIGH,
            ErrorCode.RESOURCE_TIMEOUT: ErrorSeverity.HIGH,

            ErrorCode.RESOURCE_UNAVAILABLE: ErrorSeverity.MEDIUM,
            ErrorCode.SESSION_VERSION_CONFLICT: ErrorSeverity.MEDIUM,

            ErrorCode.SESSION_NOT_FOUND: ErrorSeverity.LOW,
            ErrorCode.DOCKET_ENTRY_NOT_FOUND: ErrorSeverity.LOW,
            ErrorCode.CASE_NOT_FOUND: ErrorSeverity.LOW,
            ErrorCode.SESSION_INVALID_STATE: ErrorSeverity.LOW,
            ErrorCode.VALIDATION_FAILED: ErrorSeverity.LOW,
            ErrorCode.INVALID_IDENTIFIER: ErrorSeverity.LOW,
            ErrorCode.CHAT_MESSAGE_INVALID: ErrorSeverity.LOW,
        }

    def classify_error(self, error_code: ErrorCode) -> Tuple[ErrorCategory, ErrorSeverity]:
        """
        Classify error by category and severity.

        Unknown codes are treated as medium severity system errors.
        """
        category = self._error_categories.get(error_code, ErrorCategory.SYSTEM)
        severity = self._error_severities.get(error_code, ErrorSeverity.MEDIUM)
        return category, severity

    def handle_custom_exception(
        self,
        request: Request,
        exc: BaseCustomException
    ) -> JSONResponse:
        """Handle the service's own exception hierarchy."""
        correlation_id = self._get_correlation_id(request, exc)
        category, severity = self.classify_error(exc.error_code)
        self.metrics.record_error(exc.error_code.value, category, severity)

        error_response = self._build_error_response(
            exc=exc,
            request=request,
            correlation_id=correlation_id,
            category=category,
            severity=severity
        )

        self._log_error(exc, request, correlation_id, category, severity)

        return JSONResponse(
            status_code=exc.http_status_code,
            content=error_response,
            headers={"X-Correlation-ID": correlation_id}
        )

    def handle_http_exception(
        self,
        request: Request,
        exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle framework HTTP exceptions such as unknown routes."""
        correlation_id = self._get_correlation_id(request)
        error_code = self._map_status_to_error_code(exc.status_code)
        category, severity = self.classify_error(error_code)
        self.metrics.record_error(error_code.value, category, severity)

        error_response = {
            "success": False,
            "error": {
                "code": error_code.value,
                "message": self._sanitize_error_message(str(exc.detail)),
                "details": {"http_status": exc.status_code},
                "correlation_id": correlation_id,
                "category": category.value,
                "severity": severity.value,
                "retryable": False,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlation_id": correlation_id,
        }

        self.logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            error_code=error_code.value,
            path=request.url.path,
            method=request.method,
            correlation_id=correlation_id
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response,
            headers={"X-Correlation-ID": correlation_id}
        )

    def handle_validation_error(
        self,
        request: Request,
        exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle request validation errors.

        Reported as 400 with one entry per failing field.
        """
        correlation_id = self._get_correlation_id(request)
        category = ErrorCategory.VALIDATION
        severity = ErrorSeverity.LOW
        self.metrics.record_error(ErrorCode.VALIDATION_FAILED.value, category, severity)

        validation_errors = []
        for error in exc.errors():
            validation_errors.append({
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })

        error_response = {
            "success": False,
            "error": {
                "code": ErrorCode.VALIDATION_FAILED.value,
                "message": "Request validation failed",
                "details": {
                    "validation_errors": validation_errors,
                    "error_count": len(validation_errors)
                },
                "correlation_id": correlation_id,
                "category": category.value,
                "severity": severity.value,
                "retryable": False,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlation_id": correlation_id,
        }

        self.logger.warning(
            "Request validation failed",
            error_count=len(validation_errors),
            fields=[e["field"] for e in validation_errors],
            path=request.url.path,
            method=request.method,
            correlation_id=correlation_id
        )

        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content=error_response,
            headers={"X-Correlation-ID": correlation_id}
        )

    def handle_unexpected_error(
        self,
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle anything the service did not raise on purpose."""
        correlation_id = self._get_correlation_id(request)
        category = ErrorCategory.SYSTEM
        severity = ErrorSeverity.CRITICAL
        error_code = ErrorCode.DATABASE_OPERATION_FAILED
        self.metrics.record_error(error_code.value, category, severity)

        error_response = {
            "success": False,
            "error": {
                "code": error_code.value,
                "message": "An unexpected error occurred. Please try again later.",
                "details": {"error_type": type(exc).__name__},
                "correlation_id": correlation_id,
                "category": category.value,
                "severity": severity.value,
                "retryable": is_retryable_error(exc),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "correlation_id": correlation_id,
        }

        if self.is_development:
            error_response["error"]["debug"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
                "request_url": str(request.url),
                "request_method": request.method,
            }

        self.logger.error(
            "Unexpected error",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
            correlation_id=correlation_id,
            exc_info=exc
        )

        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
            headers={"X-Correlation-ID": correlation_id}
        )

    def _build_error_response(
        self,
        exc: BaseCustomException,
        request: Request,
        correlation_id: str,
        category: ErrorCategory,
        severity: ErrorSeverity
    ) -> Dict[str, Any]:
        response = get_exception_response_data(exc)

        response["correlation_id"] = correlation_id
        response["error"]["correlation_id"] = correlation_id
        response["error"]["category"] = category.value
        response["error"]["severity"] = severity.value
        response["error"]["retryable"] = is_retryable_error(exc)
        response["error"]["message"] = self._sanitize_error_message(response["error"]["message"])

        if self.is_development:
            response["error"]["debug"] = {
                "exception_type": type(exc).__name__,
                "technical_message": exc.message,
                "request_url": str(request.url),
                "request_method": request.method,
            }

        return response

    def _get_correlation_id(
        self,
        request: Request,
        exc: Optional[BaseCustomException] = None
    ) -> str:
        """Get or generate correlation ID for request tracking."""
        if exc is not None and exc.correlation_id:
            return exc.correlation_id

        state_id = getattr(request.state, "correlation_id", None)
        if state_id:
            return state_id

        header_id = request.headers.get("x-correlation-id")
        if header_id:
            return header_id

        return get_correlation_id() or str(uuid.uuid4())

    def _map_status_to_error_code(self, status_code: int) -> ErrorCode:
        status_mapping = {
            400: ErrorCode.VALIDATION_FAILED,
            404: ErrorCode.SESSION_NOT_FOUND,
            405: ErrorCode.VALIDATION_FAILED,
            409: ErrorCode.SESSION_VERSION_CONFLICT,
            422: ErrorCode.VALIDATION_FAILED,
            503: ErrorCode.RESOURCE_UNAVAILABLE,
            504: ErrorCode.RESOURCE_TIMEOUT,
        }
        return status_mapping.get(status_code, ErrorCode.DATABASE_OPERATION_FAILED)

    def _sanitize_error_message(self, message: str) -> str:
        """Strip connection strings and credentials from client-facing messages."""
        message = re.sub(r'mongodb(\+srv)?://[^\s]*', '[connection_string]', message)
        message = re.sub(r'[Pp]assword[:\s=]+[^\s]+', 'password=[redacted]', message)
        return message

    def _log_error(
        self,
        exc: BaseCustomException,
        request: Request,
        correlation_id: str,
        category: ErrorCategory,
        severity: ErrorSeverity
    ) -> None:
        log_data = {
            "correlation_id": correlation_id,
            "category": category.value,
            "severity": severity.value,
            "path": request.url.path,
            "method": request.method,
            "error_code": exc.error_code.value,
            "technical_message": exc.message,
            "details": exc.details,
        }

        if severity == ErrorSeverity.CRITICAL:
            self.logger.critical("Critical error", **log_data)
        elif severity == ErrorSeverity.HIGH:
            self.logger.error("High severity error", **log_data)
        elif severity == ErrorSeverity.MEDIUM:
            self.logger.warning("Medium severity error", **log_data)
        else:
            self.logger.info("Low severity error", **log_data)

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.get_summary()


def setup_error_handlers(app: FastAPI, settings: Optional[Settings] = None) -> ErrorHandler:
    """
    Register the global exception handlers on ``app``.

    Returns:
        The handler instance, exposing error metrics
    """
    error_handler = ErrorHandler(settings)

    @app.exception_handler(BaseCustomException)
    async def custom_exception_handler(request: Request, exc: BaseCustomException):
        return error_handler.handle_custom_exception(request, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_handler.handle_validation_error(request, exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_handler.handle_http_exception(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_handler.handle_http_exception(request, exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        return error_handler.handle_unexpected_error(request, exc)

    get_logger(__name__).info("Global error handlers configured")
    return error_handler


__all__ = [
    "ErrorHandler",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorMetrics",
    "setup_error_handlers",
]
