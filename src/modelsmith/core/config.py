"""Application configuration using Pydantic BaseSettings."""

import logging

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application Environment
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Configuration
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")

    # Rodin 3D generation service
    rodin_api_key: str = Field(default="", alias="RODIN_API_KEY")
    rodin_base_url: str = Field(
        default="https://hyperhuman.deemos.com/api/v2", alias="RODIN_BASE_URL"
    )
    upstream_timeout_seconds: float = Field(default=30.0, alias="UPSTREAM_TIMEOUT_SECONDS")

    # Orchestration timing
    poll_interval_seconds: float = Field(default=2.0, ge=0, alias="POLL_INTERVAL_SECONDS")
    artifact_settle_seconds: float = Field(default=1.0, ge=0, alias="ARTIFACT_SETTLE_SECONDS")

    # Request limits
    max_images: int = Field(default=8, ge=1, alias="MAX_IMAGES")
    max_image_bytes: int = Field(default=10 * 1024 * 1024, ge=1, alias="MAX_IMAGE_BYTES")
    max_prompt_length: int = Field(default=1000, ge=1, alias="MAX_PROMPT_LENGTH")

    # Session housekeeping
    session_ttl_seconds: float = Field(default=3600.0, gt=0, alias="SESSION_TTL_SECONDS")
    max_sessions: int = Field(default=1000, ge=1, alias="MAX_SESSIONS")

    # Download relay
    relay_path: str = Field(default="/api/relay", alias="RELAY_PATH")
    relay_user_agent: str = Field(
        default="Mozilla/5.0 (compatible; 3D-Model-Proxy/1.0)", alias="RELAY_USER_AGENT"
    )
    relay_cache_seconds: int = Field(default=3600, ge=0, alias="RELAY_CACHE_SECONDS")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def relay_probe_base(self) -> str:
        """Absolute relay URL used for server-side HEAD probes."""
        return f"{self.public_base_url.rstrip('/')}{self.relay_path}"

    @model_validator(mode="after")
    def validate_required_config(self) -> "Settings":
        """Validate required configuration on startup.

        Fails fast with a clear error message if the generation service
        credentials are missing. Skipped in test environments.
        """
        if self.app_env in ("test", "testing"):
            return self

        if not self.rodin_api_key:
            raise ValueError(
                "CRITICAL: Missing required environment variables:\n\n"
                "  - RODIN_API_KEY: Get your API key from https://hyper3d.ai/api-dashboard\n\n"
                "The application cannot start without these variables.\n"
                "Please update your .env file and restart."
            )

        return self


def configure_logging(settings: Settings) -> None:
    """Configure structlog based on application environment.

    - Production: JSON output for log aggregation
    - Development: Console output for human readability
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.app_env == "production":
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
    else:
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(),
            cache_logger_on_first_use=True,
        )
