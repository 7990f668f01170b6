"""
Configuration module for the session service.

This module uses Pydantic Settings to load and validate environment variables
for token signing, token lifetimes, password hashing, credential storage,
the HTTP boundary and the client session controller.

Environment variables are loaded from .env file or system environment.
"""

from datetime import timedelta
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Access and refresh tokens are signed with separate secrets so that a
    leaked access-signing key cannot be used to forge refresh tokens.
    """

    # =========================================================================
    # Token Signing Configuration
    # =========================================================================

    ACCESS_TOKEN_SECRET: str = Field(
        ...,
        description="Secret key for signing access tokens",
        min_length=32,
    )

    REFRESH_TOKEN_SECRET: str = Field(
        ...,
        description="Secret key for signing refresh tokens (must differ from ACCESS_TOKEN_SECRET)",
        min_length=32,
    )

    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    ACCESS_TOKEN_EXPIRY_MINUTES: int = Field(
        default=15,
        description="Access token lifetime in minutes",
        ge=1,
        le=1440,
    )

    REFRESH_TOKEN_EXPIRY_DAYS: int = Field(
        default=7,
        description="Refresh token lifetime in days",
        ge=1,
        le=365,
    )

    ROTATE_REFRESH_TOKENS: bool = Field(
        default=False,
        description="Issue a new refresh token on every refresh and revoke the presented one",
    )

    # =========================================================================
    # Password Hashing
    # =========================================================================

    BCRYPT_ROUNDS: int = Field(
        default=10,
        description="bcrypt cost factor",
        ge=4,
        le=16,
    )

    # =========================================================================
    # Credential Store
    # =========================================================================

    STORE_BACKEND: str = Field(
        default="memory",
        description="Credential store backend: 'memory' or 'sql'",
    )

    DATABASE_URL: str = Field(
        default="sqlite:///data/authsession.db",
        description="SQLAlchemy database URL used when STORE_BACKEND is 'sql'",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(default="0.0.0.0", description="Host to bind the server")

    PORT: int = Field(default=8080, description="Port to bind the server", ge=1, le=65535)

    ALLOWED_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # =========================================================================
    # Client Session Controller
    # =========================================================================

    CLIENT_BASE_URL: str = Field(
        default="http://localhost:8080",
        description="Base URL the client session controller talks to",
    )

    CLIENT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to every client network call",
        gt=0,
    )

    CLIENT_REFRESH_INTERVAL_SECONDS: int = Field(
        default=14 * 60,
        description="Interval between automatic access token refreshes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRY_MINUTES)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.REFRESH_TOKEN_EXPIRY_DAYS)

    @property
    def client_refresh_interval(self) -> timedelta:
        return timedelta(seconds=self.CLIENT_REFRESH_INTERVAL_SECONDS)

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate JWT algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("STORE_BACKEND")
    @classmethod
    def validate_store_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("memory", "sql"):
            raise ValueError(f"STORE_BACKEND must be 'memory' or 'sql', got: {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return v

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        """Access and refresh tokens must not share a signing key."""
        if self.ACCESS_TOKEN_SECRET == self.REFRESH_TOKEN_SECRET:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ")
        return self


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate operational settings and return a status report.

    Called during application startup; errors are conditions the service
    should not run with, warnings are logged.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    refresh_interval = settings.client_refresh_interval
    if refresh_interval >= settings.access_token_ttl:
        errors.append(
            "CLIENT_REFRESH_INTERVAL_SECONDS must be shorter than the access token lifetime"
        )
    elif settings.access_token_ttl - refresh_interval < timedelta(seconds=30):
        warnings.append(
            "Client refresh margin is under 30 seconds; latency or clock skew may expire sessions"
        )

    if settings.BCRYPT_ROUNDS < 10:
        warnings.append("BCRYPT_ROUNDS is below 10 (acceptable for tests only)")

    if settings.STORE_BACKEND == "memory":
        warnings.append("Using in-memory credential store; sessions are lost on restart")

    if settings.ROTATE_REFRESH_TOKENS:
        warnings.append("Refresh token rotation enabled; clients must persist the returned refreshToken")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "store_backend": settings.STORE_BACKEND,
        "access_token_expiry_minutes": settings.ACCESS_TOKEN_EXPIRY_MINUTES,
        "refresh_token_expiry_days": settings.REFRESH_TOKEN_EXPIRY_DAYS,
    }
