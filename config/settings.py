"""
Configuration management for 1Day1Commit.

This module provides centralized configuration management with:
- Environment-specific settings
- Type validation and defaults
- GitHub, email and web push credentials
- Reminder scheduler tuning
- Database and service configurations
"""

from typing import Optional, List, Dict, Any
from functools import lru_cache

from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings
from pydantic_settings import BaseSettings as PydanticBaseSettings


class DatabaseSettings(BaseSettings):
    """Database configuration settings."""

    url: str = Field(
        default="sqlite:///data/onedayonecommit.sqlite",
        description="Database connection URL",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Connection pool timeout")
    pool_recycle: int = Field(default=3600, description="Connection pool recycle time")
    echo: bool = Field(default=False, description="Enable SQL logging")

    @field_validator("url")
    @classmethod
    def validate_database_url(cls, v):
        if not v.startswith(("postgresql://", "postgres://", "sqlite://")):
            raise ValueError("Database URL must be PostgreSQL or SQLite")
        return v


class RedisSettings(BaseSettings):
    """Redis configuration settings."""

    url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    enabled: bool = Field(default=False, description="Publish domain events to Redis")
    channel: str = Field(default="habit_events", description="Pub/sub channel for events")
    socket_connect_timeout: int = Field(default=5, description="Socket connect timeout")
    socket_timeout: int = Field(default=5, description="Socket timeout")
    retry_on_timeout: bool = Field(default=True, description="Retry on timeout")


class GitHubSettings(BaseSettings):
    """GitHub API configuration settings."""

    api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    graphql_url: str = Field(
        default="https://api.github.com/graphql", description="GitHub GraphQL endpoint"
    )
    timeout: float = Field(default=10.0, description="Per-request timeout in seconds")
    repos_per_page: int = Field(default=100, ge=1, le=100, description="Repos fetched per call")
    events_per_page: int = Field(default=100, ge=1, le=100, description="Events fetched per call")
    user_agent: str = Field(default="1day1commit", description="User-Agent header")

    @field_validator("api_url", "graphql_url")
    @classmethod
    def validate_github_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("GitHub URL must be HTTP/HTTPS")
        return v.rstrip("/")


class EmailSettings(BaseSettings):
    """Transactional email (Resend) configuration settings."""

    api_key: Optional[SecretStr] = Field(default=None, description="Resend API key")
    api_url: str = Field(default="https://api.resend.com/emails", description="Resend endpoint")
    sender: str = Field(
        default="1Day1Commit <noreply@resend.dev>", description="From header for reminders"
    )
    timeout: float = Field(default=10.0, description="Request timeout in seconds")

    @field_validator("api_url")
    @classmethod
    def validate_email_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("Email API URL must be HTTP/HTTPS")
        return v


class PushSettings(BaseSettings):
    """Web push (VAPID) configuration settings."""

    vapid_public_key: Optional[str] = Field(default=None, description="VAPID public key")
    vapid_private_key: Optional[SecretStr] = Field(default=None, description="VAPID private key")
    vapid_subject: str = Field(
        default="mailto:admin@1day1commit.com", description="VAPID subject claim"
    )
    icon: str = Field(default="/commit.webp", description="Notification icon path")
    ttl: int = Field(default=3600, description="Push message time to live in seconds")


class SchedulerSettings(BaseSettings):
    """Reminder scheduler configuration settings."""

    enabled: bool = Field(default=True, description="Start the reminder loop with the API")
    tick_seconds: int = Field(default=60, description="Seconds between reminder scans")
    max_concurrent_users: int = Field(
        default=5, description="Users processed concurrently per tick"
    )
    default_timezone: str = Field(
        default="America/New_York", description="Timezone given to new users who do not pick one"
    )
    default_reminder_times: List[str] = Field(
        default=["09:00", "15:00", "20:00"], description="Reminder times seeded for new users"
    )

    @field_validator("tick_seconds", "max_concurrent_users")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Scheduler values must be positive")
        return v


class SecuritySettings(BaseSettings):
    """Security configuration settings."""

    cors_origins: List[str] = Field(default=["*"], description="CORS allowed origins")


class MonitoringSettings(BaseSettings):
    """Logging configuration settings."""

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()


class ServiceSettings(BaseSettings):
    """Service-specific configuration settings."""

    api_host: str = Field(default="0.0.0.0", description="API bind address")
    api_port: int = Field(default=8001, description="API service port")
    app_url: str = Field(
        default="https://1day1commit.netlify.app", description="Public URL of the web client"
    )
    request_timeout: int = Field(default=30, description="HTTP request timeout")


class Settings(PydanticBaseSettings):
    """
    Main application settings with environment-specific configuration.

    Supports multiple environments:
    - development: Local development settings
    - testing: Test environment settings
    - staging: Staging environment settings
    - production: Production environment settings
    """

    # Core application settings
    app_name: str = Field(default="1Day1Commit", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Service configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    service: ServiceSettings = Field(default_factory=ServiceSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        valid_environments = ["development", "testing", "staging", "production"]
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator("debug")
    @classmethod
    def validate_debug_mode(cls, v, info):
        if info.data.get("environment") == "production" and v:
            raise ValueError("Debug mode cannot be enabled in production")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "extra": "ignore"
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration object

    Example:
        >>> settings = get_settings()
        >>> print(settings.database.url)
        >>> print(settings.scheduler.tick_seconds)
    """
    return Settings()


# Global settings instance
settings = get_settings()


def get_database_url() -> str:
    """Get database URL with environment-specific configuration."""
    if settings.environment == "testing":
        return "sqlite:///data/onedayonecommit_test.sqlite"
    return settings.database.url


def is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def is_testing() -> bool:
    """Check if running in testing environment."""
    return settings.environment == "testing"


def email_configured() -> bool:
    """Whether reminder emails can be delivered."""
    return settings.email.api_key is not None


def push_configured() -> bool:
    """Whether web push has a VAPID key pair."""
    return bool(settings.push.vapid_public_key and settings.push.vapid_private_key)


def validate_configuration() -> Dict[str, Any]:
    """
    Validate all configuration settings and return validation results.

    Returns:
        Dict[str, Any]: Validation results with status and errors

    Example:
        >>> validation = validate_configuration()
        >>> if not validation['valid']:
        >>>     print("Configuration errors:", validation['errors'])
    """
    errors = []
    warnings = []

    if is_production():
        if settings.debug:
            errors.append("Debug mode cannot be enabled in production")

        if settings.database.url.startswith("sqlite://"):
            warnings.append("SQLite database in production")

    if not email_configured():
        warnings.append("Resend API key not configured - reminder emails disabled")

    if not push_configured():
        warnings.append("VAPID keys not configured - push notifications disabled")

    try:
        from zoneinfo import ZoneInfo

        ZoneInfo(settings.scheduler.default_timezone)
    except Exception as e:
        errors.append(f"Invalid default timezone: {e}")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "environment": settings.environment,
        "services": {
            "database": "configured",
            "redis": "enabled" if settings.redis.enabled else "disabled",
            "email": "configured" if email_configured() else "disabled",
            "push": "configured" if push_configured() else "disabled",
        },
    }


def export_config() -> Dict[str, Any]:
    """
    Export configuration for external tools and monitoring.

    Returns:
        Dict[str, Any]: Configuration export (without sensitive data)
    """
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "database": {
            "pool_size": settings.database.pool_size,
            "echo": settings.database.echo,
        },
        "github": {
            "api_url": settings.github.api_url,
            "timeout": settings.github.timeout,
        },
        "scheduler": {
            "enabled": settings.scheduler.enabled,
            "tick_seconds": settings.scheduler.tick_seconds,
            "max_concurrent_users": settings.scheduler.max_concurrent_users,
            "default_timezone": settings.scheduler.default_timezone,
        },
        "monitoring": {
            "log_level": settings.monitoring.log_level,
        },
        "service": {
            "api_port": settings.service.api_port,
            "app_url": settings.service.app_url,
        },
    }


if __name__ == "__main__":
    """Configuration validation script."""
    import json

    validation = validate_configuration()
    config_export = export_config()

    print("Configuration Validation:")
    print(json.dumps(validation, indent=2))

    print("\nConfiguration Export:")
    print(json.dumps(config_export, indent=2))

    if not validation["valid"]:
        exit(1)
