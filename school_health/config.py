"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API tokens in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class PortalApiConfig(BaseModel):
    """Connection to the portal REST backend."""

    base_url: str = Field(default="http://localhost:8080/api", description="Backend base URL")
    auth_token: str | None = Field(default=None, description="Bearer token for the backend")
    timeout_seconds: float = Field(default=10.0, gt=0.0, description="Per-request timeout")

    @field_validator("base_url")
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Portal API base URL must start with http:// or https://")
        return v.rstrip("/")


class CatalogConfig(BaseModel):
    """Vaccine and checkup-type catalog behaviour."""

    timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Timeout for fetching catalog data"
    )
    fallback_enabled: bool = Field(
        default=True, description="Use the built-in default catalog when the backend fails"
    )


class GradeLevelConfig(BaseModel):
    timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Timeout for fetching grade levels"
    )


class StudentDirectoryConfig(BaseModel):
    timeout_seconds: float = Field(
        default=15.0, gt=0.0, description="Timeout for student directory lookups"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    portal_api: PortalApiConfig = Field(default_factory=PortalApiConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    grade_levels: GradeLevelConfig = Field(default_factory=GradeLevelConfig)
    student_directory: StudentDirectoryConfig = Field(default_factory=StudentDirectoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    portal_api_config = PortalApiConfig(
        base_url=os.getenv("PORTAL_API_BASE_URL", "http://localhost:8080/api"),
        auth_token=os.getenv("PORTAL_API_TOKEN") or None,
        timeout_seconds=float(os.getenv("PORTAL_API_TIMEOUT_SECONDS", "10.0")),
    )

    catalog_config = CatalogConfig(
        timeout_seconds=float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5.0")),
        fallback_enabled=_parse_bool(os.getenv("CATALOG_FALLBACK_ENABLED"), True),
    )

    grade_level_config = GradeLevelConfig(
        timeout_seconds=float(os.getenv("GRADE_LEVELS_TIMEOUT_SECONDS", "5.0")),
    )

    directory_config = StudentDirectoryConfig(
        timeout_seconds=float(os.getenv("STUDENT_DIRECTORY_TIMEOUT_SECONDS", "15.0")),
    )

    # Console output in development unless explicitly overridden
    log_format = os.getenv("LOG_FORMAT", "console" if debug else "json").strip().lower()
    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if log_format == "console" else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        portal_api=portal_api_config,
        catalog=catalog_config,
        grade_levels=grade_level_config,
        student_directory=directory_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    get_config.cache_clear()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")

        if config.portal_api.auth_token:
            print("✅ Portal API token configured")
        else:
            print("⚠️  No portal API token configured, requests will be anonymous")

        if not config.catalog.fallback_enabled:
            print("⚠️  Catalog fallback disabled, event creation needs a reachable backend")

    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level} ({config.logging.format})")

    print("\n🌐 PORTAL API")
    print(f"Base URL: {config.portal_api.base_url}")
    print(f"Timeout: {config.portal_api.timeout_seconds}s")

    print("\n💉 CATALOG")
    print(f"Timeout: {config.catalog.timeout_seconds}s")
    print(f"Fallback Enabled: {config.catalog.fallback_enabled}")

    print("\n🏫 DIRECTORIES")
    print(f"Grade Levels Timeout: {config.grade_levels.timeout_seconds}s")
    print(f"Student Directory Timeout: {config.student_directory.timeout_seconds}s")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
