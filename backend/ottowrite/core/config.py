"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


_DEV_JWT_SECRET = "dev-insecure-key-change-me"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field maps to an upper-case environment variable of the same
    name (``SNAPSHOT_RETENTION_LIMIT``, ``RATE_LIMIT_SAVE_PER_MINUTE``...).
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./ottowrite.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled"
    )

    # Authentication
    # Tokens are HS256 JWTs shaped like the hosted auth provider's access tokens.
    # AUTH_ENABLED=false makes every request act as DEV_USER_ID.
    jwt_secret_key: str = Field(
        default=_DEV_JWT_SECRET,
        description="JWT signing secret (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_audience: str = Field(
        default="authenticated",
        description="Expected 'aud' claim on access tokens"
    )
    auth_enabled: bool = Field(
        default=False,
        description="Enable JWT authentication (False for development)"
    )
    dev_user_id: str = Field(
        default="dev-user",
        description="User id assumed for every request while auth is disabled"
    )

    # Rate Limiting (token bucket: sustained rate plus burst allowance)
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_per_minute: int = Field(
        default=100,
        description="Sustained requests per client per minute for general API calls"
    )
    rate_limit_burst: int = Field(
        default=50,
        description="Extra requests a client may burst above the sustained rate"
    )
    rate_limit_save_per_minute: int = Field(
        default=120,
        description="Sustained autosave requests per client per minute"
    )
    rate_limit_save_burst: int = Field(default=60)
    rate_limit_merge_per_minute: int = Field(
        default=20,
        description="Sustained branch merge requests per client per minute"
    )
    rate_limit_merge_burst: int = Field(default=10)

    # Autosave / branching
    snapshot_retention_limit: int = Field(
        default=50,
        description="Autosave snapshots kept per document before the oldest are pruned"
    )
    commit_history_max: int = Field(
        default=100,
        description="Maximum commits returned by a single history request"
    )

    # Error reporting
    error_reporting_enabled: bool = Field(
        default=True,
        description="Classify and report errors to the structured error log"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('snapshot_retention_limit', 'commit_history_max')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be at least 1")
        return v

    def config_warnings(self) -> List[str]:
        """Return human-readable problems with security-critical settings."""
        warnings: list[str] = []

        if self.jwt_secret_key == _DEV_JWT_SECRET:
            warnings.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Use the auth provider's JWT secret."
            )

        if not self.auth_enabled:
            warnings.append(
                "AUTH_ENABLED is false. "
                "Every request acts as the development user."
            )

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            warnings.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        return warnings

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development the problems are only returned by ``config_warnings``.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors = self.config_warnings()
        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
