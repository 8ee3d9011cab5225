"""
FastAPI request logging middleware for the court session service.

Establishes the per-request correlation ID (taken from the
``X-Correlation-ID`` header or generated), exposes it on ``request.state``
and the response headers, and writes one structured log line per request
with its duration. Requests slower than
``logging.slow_request_threshold_ms`` are logged as warnings.
"""

import time
import uuid
from typing import Callable, Optional, Set

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from courtroom.app.utils.logging import clear_correlation_id, get_logger, set_correlation_id
from courtroom.config.settings import Settings, get_settings


class RequestLoggingConfig:
    """Configuration for request logging behavior."""

    def __init__(
        self,
        excluded_paths: Optional[Set[str]] = None,
        log_query_params: bool = True,
        slow_request_threshold_ms: float = 1000.0,
    ):
        self.excluded_paths = excluded_paths or {"/health", "/docs", "/redoc", "/openapi.json"}
        self.log_query_params = log_query_params
        self.slow_request_threshold_ms = slow_request_threshold_ms

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RequestLoggingConfig":
        settings = settings or get_settings()
        return cls(
            excluded_paths=set(settings.logging.excluded_paths),
            log_query_params=settings.logging.log_query_params,
            slow_request_threshold_ms=settings.logging.slow_request_threshold_ms,
        )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware to establish request context with correlation IDs and timing.

    Registered last so that it runs first and every handler sees the context.
    """

    def __init__(self, app: ASGIApp, config: Optional[RequestLoggingConfig] = None):
        super().__init__(app)
        self.config = config or RequestLoggingConfig.from_settings()
        self.logger = get_logger("middleware.context")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = self._get_or_generate_correlation_id(request)
        set_correlation_id(correlation_id)

        start_time = time.time()
        request.state.correlation_id = correlation_id
        request.state.start_time = start_time

        try:
            response = await call_next(request)
        except Exception as exc:
            self.logger.error(
                "Request processing failed",
                method=request.method,
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise
        else:
            response.headers["X-Correlation-ID"] = correlation_id
            self._log_request(request, response.status_code, start_time)
            return response
        finally:
            clear_correlation_id()

    def _log_request(self, request: Request, status_code: int, start_time: float) -> None:
        path = request.url.path
        if path in self.config.excluded_paths:
            return

        duration_ms = (time.time() - start_time) * 1000
        context = {
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": self._get_client_ip(request),
        }
        if self.config.log_query_params and request.url.query:
            context["query_params"] = request.url.query

        if duration_ms > self.config.slow_request_threshold_ms:
            self.logger.warning("Slow request", **context)
        else:
            self.logger.info("Request completed", **context)

    def _get_or_generate_correlation_id(self, request: Request) -> str:
        return request.headers.get("x-correlation-id") or str(uuid.uuid4())

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"


def setup_logging_middleware(app: FastAPI, config: Optional[RequestLoggingConfig] = None) -> None:
    """Register the request context middleware on ``app``."""
    config = config or RequestLoggingConfig.from_settings()
    app.add_middleware(RequestContextMiddleware, config=config)

    get_logger(__name__).info(
        "Logging middleware configured",
        excluded_paths=len(config.excluded_paths),
        slow_request_threshold_ms=config.slow_request_threshold_ms,
    )
