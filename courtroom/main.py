"""
Court Session Service - FastAPI Application Entry Point

Wires configuration, logging, MongoDB, middleware, error handlers and the
court session routers into one ASGI application.

Run locally with:

    python -m courtroom.main

or through any ASGI server pointed at ``courtroom.main:app``.
"""

import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from courtroom.app.api.middleware.error_handler import setup_error_handlers
from courtroom.app.api.middleware.logging import setup_logging_middleware
from courtroom.app.api.routes import chat, participants, sessions
from courtroom.app.core.database import close_databases, get_database_manager, init_databases
from courtroom.app.utils.logging import get_logger, initialize_logging_from_settings
from courtroom.config.settings import get_settings

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect to MongoDB on startup and release the client on shutdown."""
    initialize_logging_from_settings()
    settings = get_settings()

    logger.info(
        "Court session service starting up",
        environment=settings.environment,
        debug_mode=settings.debug
    )

    for section, issues in settings.validate_configuration().items():
        for issue in issues:
            logger.warning("Configuration problem", section=section, issue=issue)

    await init_databases(create_indexes=True)
    logger.info("Database connections established successfully")

    try:
        yield
    finally:
        logger.info("Court session service shutting down")
        await close_databases()


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Court session scheduling, docket progression, roster and chat",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan
    )

    configure_middleware(app)
    configure_routes(app)
    app.state.error_handler = setup_error_handlers(app, settings)

    return app


def configure_middleware(app: FastAPI) -> None:
    """Configure application middleware stack."""
    settings = get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"]
    )

    # Added last so it runs first
    setup_logging_middleware(app)


def configure_routes(app: FastAPI) -> None:
    """Configure application routes and API endpoints."""
    settings = get_settings()

    @app.get("/health", tags=["system"])
    async def health_check(request: Request):
        """Service and MongoDB health, with the error counts seen so far."""
        mongodb = await get_database_manager().health_check()
        healthy = mongodb.get("status") == "healthy"

        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "service": settings.app_name,
                "version": settings.app_version,
                "mongodb": mongodb,
                "errors": request.app.state.error_handler.get_metrics(),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )

    app.include_router(sessions.router, prefix=settings.api.prefix)
    app.include_router(participants.router, prefix=settings.api.prefix)
    app.include_router(chat.router, prefix=settings.api.prefix)


app = create_application()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info("Starting court session development server")

    try:
        uvicorn.run(
            "courtroom.main:app",
            host="0.0.0.0",
            port=8000,
            reload=settings.debug,
            access_log=False
        )
    except KeyboardInterrupt:
        logger.info("Development server stopped by user")
    except Exception as e:
        logger.error("Failed to start development server", error=str(e))
        sys.exit(1)
