"""
FullFeed Configuration System
=============================

Configuration management with environment variables and Pydantic models.
Environment variables (``FULLFEED_`` prefix, ``__`` for nesting) override
Field defaults.
"""

import os
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class OutputFormat(str, Enum):
    """Serialized feed formats."""
    JSON = "json"
    RSS = "rss"


class ProcessingSettings(BaseModel):
    """Feed assembly configuration."""
    default_limit: int = Field(default=10, ge=1, le=200, description="Items returned when no limit is given")
    max_limit: int = Field(default=50, ge=1, le=200, description="Upper clamp for the per-request limit")
    max_concurrent_extractions: int = Field(default=8, ge=1, le=64, description="Concurrent item extractions per request")
    item_timeout: float = Field(default=20.0, gt=0, le=120, description="Per-item extraction deadline in seconds")
    request_timeout: float = Field(default=45.0, gt=0, le=300, description="Overall per-request deadline in seconds")
    summary_length: int = Field(default=300, ge=20, le=5000, description="Plain-text summary length in characters")
    default_category: str = Field(default="turkiye", description="Category used when no URL rule matches")

    @field_validator('max_limit')
    @classmethod
    def validate_max_limit(cls, v, info):
        """Ensure the clamp is not below the default."""
        default_limit = info.data.get('default_limit', 1)
        if v < default_limit:
            raise ValueError("max_limit must be >= default_limit")
        return v


class CacheSettings(BaseModel):
    """Result cache configuration."""
    ttl_seconds: int = Field(default=7200, ge=1, description="Age after which a cached payload is stale")
    cleanup_interval_seconds: int = Field(default=3600, ge=1, description="Interval of the background sweep")


class TransportSettings(BaseModel):
    """Outbound HTTP configuration."""
    user_agent: str = Field(default="Mozilla/5.0 (compatible; RSSFullTextBot/1.0)", description="User-Agent header")
    timeout: float = Field(default=15.0, gt=0, le=120, description="Per-request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, le=10, description="Retries after the first attempt")
    backoff_base: float = Field(default=0.5, ge=0.0, le=30.0, description="Base delay for exponential backoff")
    max_connections: int = Field(default=32, ge=1, le=512, description="Connection pool size")
    allow_private_hosts: bool = Field(default=False, description="Allow feeds on loopback/private networks")


class FilterRuleSettings(BaseModel):
    """One URL filter rule as loaded from configuration."""
    domain: str
    allowed_paths: List[str] = Field(default_factory=list)
    blocked_paths: List[str] = Field(default_factory=list)


class FilteringSettings(BaseModel):
    """URL filtering configuration."""
    use_builtin_rules: bool = Field(default=True, description="Load the built-in per-site rules")
    rules: List[FilterRuleSettings] = Field(default_factory=list, description="Additional filter rules")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/fullfeed.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class ServerSettings(BaseModel):
    """HTTP server configuration."""
    host: str = Field(default="0.0.0.0", description="Listen address")
    port: int = Field(default=8080, ge=1, le=65535, description="Listen port")


class FullFeedSettings(BaseSettings):
    """Main application settings."""

    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    filtering: FilteringSettings = Field(default_factory=FilteringSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    app_name: str = Field(default="fullfeed", description="Application name")
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

        if self.processing.item_timeout > self.processing.request_timeout:
            errors.append("processing.item_timeout must not exceed processing.request_timeout")

        for rule in self.filtering.rules:
            if not rule.domain.strip():
                errors.append("filtering.rules entries need a non-empty domain")

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

    def is_production_mode(self) -> bool:
        """Check if running in production mode."""
        return not self.debug and os.getenv("ENV", "development").lower() == "production"

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
        settings = FullFeedSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        )


# Global settings instance
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
