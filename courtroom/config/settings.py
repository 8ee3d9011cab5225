"""
Application settings for the court session service.

Configuration is loaded from environment variables and an optional .env file
using nested sections separated by a double underscore, for example
``DATABASE__MONGODB_URL`` or ``SESSIONS__ENFORCE_VERSION_CHECK``.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """MongoDB configuration settings."""
    mongodb_url: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URL"
    )
    mongodb_database: str = Field(
        default="dispatch",
        description="MongoDB database name"
    )
    sessions_collection: str = Field(
        default="courtsessions",
        description="Collection holding court session documents"
    )
    chat_collection: str = Field(
        default="courtchat",
        description="Collection holding court chat messages"
    )
    cases_collection: str = Field(
        default="courtcases",
        description="Collection holding the external court case records"
    )
    query_timeout_seconds: float = Field(
        default=7.0,
        description="Deadline applied to each request's store operations"
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        description="MongoDB server selection timeout in milliseconds"
    )
    max_pool_size: int = Field(
        default=50,
        description="Maximum MongoDB connection pool size"
    )
    min_pool_size: int = Field(
        default=5,
        description="Minimum MongoDB connection pool size"
    )


class PaginationSettings(BaseModel):
    """Paging defaults for list endpoints."""
    session_default_limit: int = Field(
        default=10,
        description="Page size used when a session listing has no valid limit"
    )
    chat_default_limit: int = Field(
        default=50,
        description="Page size used when a chat listing has no valid limit"
    )


class SessionSettings(BaseModel):
    """Court session behaviour settings."""
    enforce_version_check: bool = Field(
        default=True,
        description="Reject session writes whose revision no longer matches the stored one"
    )


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    format: str = Field(
        default="text",
        description="Log format (json/text)"
    )

    enable_correlation_ids: bool = Field(
        default=True,
        description="Enable correlation ID tracking"
    )

    log_query_params: bool = Field(
        default=True,
        description="Include query parameters in request logs"
    )

    slow_request_threshold_ms: float = Field(
        default=1000.0,
        description="Threshold for slow request warnings (milliseconds)"
    )

    excluded_paths: list[str] = Field(
        default_factory=lambda: ["/health", "/docs", "/redoc", "/openapi.json"],
        description="Paths to exclude from request logging"
    )

    log_file_path: Optional[str] = Field(
        default=None,
        description="Optional path to a log file"
    )


class APISettings(BaseModel):
    """HTTP surface settings."""
    prefix: str = Field(
        default="/api/v1",
        description="Prefix for all court session routes"
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins"
    )


class Settings(BaseSettings):
    """
    Application configuration settings.

    Values come from environment variables, the .env file and the defaults
    declared on each section.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default="Courtroom Session Service",
        description="Application name"
    )

    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    debug: bool = Field(
        default=False,
        description="Debug mode enabled"
    )

    environment: str = Field(
        default="development",
        description="Environment (development/staging/production)"
    )

    database: DatabaseSettings = Field(
        default_factory=DatabaseSettings,
        description="Database configuration"
    )

    pagination: PaginationSettings = Field(
        default_factory=PaginationSettings,
        description="Pagination defaults"
    )

    sessions: SessionSettings = Field(
        default_factory=SessionSettings,
        description="Court session behaviour"
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration"
    )

    api: APISettings = Field(
        default_factory=APISettings,
        description="HTTP API configuration"
    )

    def validate_configuration(self) -> Dict[str, list[str]]:
        """
        Validate the entire configuration.

        Returns:
            Dictionary with validation errors by section
        """
        errors: Dict[str, list[str]] = {}

        if not self.database.mongodb_url.startswith(("mongodb://", "mongodb+srv://")):
            errors.setdefault("database", []).append(
                f"Invalid URL: database.mongodb_url = {self.database.mongodb_url}"
            )

        positive_fields = [
            ("database.query_timeout_seconds", self.database.query_timeout_seconds),
            ("pagination.session_default_limit", self.pagination.session_default_limit),
            ("pagination.chat_default_limit", self.pagination.chat_default_limit),
        ]

        for field_path, value in positive_fields:
            if value <= 0:
                section = field_path.split('.')[0]
                errors.setdefault(section, []).append(
                    f"Must be positive: {field_path} = {value}"
                )

        if self.logging.format not in ("json", "text"):
            errors.setdefault("logging", []).append(
                f"Unknown log format: {self.logging.format}"
            )

        return errors


# Environment variable mapping examples:
# DATABASE__MONGODB_URL=mongodb://mongo:27017
# DATABASE__QUERY_TIMEOUT_SECONDS=5
# PAGINATION__CHAT_DEFAULT_LIMIT=100
# SESSIONS__ENFORCE_VERSION_CHECK=false
# LOGGING__FORMAT=json

def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
