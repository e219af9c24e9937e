"""
FullFeed Configuration System
=============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; FullFeed/1.0; +https://github.com/fullfeed/fullfeed)"
)


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ScraperSettings(BaseModel):
    """Web page fetching configuration."""
    timeout: int = Field(default=20, ge=1, le=300, description="Page request timeout in seconds")
    default_user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User agent when the feed sets none")
    max_body_size: int = Field(
        default=2 * 1024 * 1024,
        ge=1024,
        description="Maximum number of bytes read from a page"
    )
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")

    @field_validator('default_user_agent')
    @classmethod
    def validate_user_agent(cls, v):
        """Ensure a non-blank user agent."""
        v = v.strip()
        if not v:
            raise ValueError("default_user_agent cannot be empty")
        return v


class FilteringSettings(BaseModel):
    """Keep-list / block-list evaluation."""
    strict_rules: bool = Field(
        default=False,
        description="Raise on an uncompilable filter pattern instead of treating it as 'no match'"
    )


class MetricsSettings(BaseModel):
    """Metrics collection."""
    enabled: bool = Field(default=False, description="Record scraper request observations")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/fullfeed.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/fullfeed.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FullFeedSettings(BaseSettings):
    """Main application settings."""

    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    filtering: FilteringSettings = Field(default_factory=FilteringSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FullFeed", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FULLFEED_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FullFeedSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = FullFeedSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


_settings: Optional[FullFeedSettings] = None


def get_settings(reload: bool = False) -> FullFeedSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
