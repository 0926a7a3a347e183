"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
Every model is frozen: the configuration is built once at process start and
handed to the application by reference.
"""

from __future__ import annotations

import os
from typing import Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, computed_field


class FrozenModel(BaseModel):
    """Base class for immutable configuration sections."""

    model_config = ConfigDict(frozen=True)


class CORSConfig(FrozenModel):
    """CORS configuration for the application."""

    origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(default=["GET", "POST", "OPTIONS"])
    allow_headers: list[str] = Field(default=["*"])


class RedisConfig(FrozenModel):
    """Redis configuration model (optional auth-session storage backend)."""

    enabled: bool = Field(default=False, description="Enable Redis storage")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                # URL already has auth info
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url


class GoogleOneTapConfig(FrozenModel):
    """Google One Tap credential provider configuration."""

    enabled: bool = Field(default=True, description="Enable One Tap sign-in")
    id: str = Field(
        default="googleonetap", description="Credential provider id used in routes"
    )
    name: str = Field(default="google-one-tap", description="Readable provider name")
    client_id: str = Field(
        default="", description="Application client id (expected token audience)"
    )
    issuers: list[str] = Field(
        default_factory=lambda: ["https://accounts.google.com", "accounts.google.com"],
        description="Accepted ID token issuers",
    )
    jwks_uri: str = Field(
        default="https://www.googleapis.com/oauth2/v3/certs",
        description="JWKS endpoint publishing the provider signing keys",
    )
    account_provider: str = Field(
        default="google", description="Provider name recorded on linked accounts"
    )
    account_type: str = Field(
        default="credentials", description="Type recorded on linked accounts"
    )
    script_url: str = Field(
        default="https://accounts.google.com/gsi/client",
        description="Client SDK script loaded by the browser",
    )


class OIDCProviderConfig(FrozenModel):
    """OAuth / OIDC provider configuration model."""

    name: str = Field(default="", description="Readable provider name")
    authorization_endpoint: str = Field(description="Authorization endpoint URL")
    token_endpoint: str = Field(description="Token endpoint URL")
    userinfo_endpoint: str | None = Field(
        default=None, description="Userinfo endpoint URL"
    )
    issuer: str = Field(description="Issuer URL")
    jwks_uri: str = Field(description="JWKS endpoint for ID token validation")
    scopes: list[str] = Field(
        default_factory=lambda: ["openid", "profile", "email"],
        description="Scopes to request during authentication",
    )
    client_id: str = Field(description="Client ID for the provider")
    client_secret: str = Field(default="", description="Client secret for the provider")
    redirect_uri: str = Field(description="Redirect URI for this provider")
    allow_dangerous_email_account_linking: bool = Field(
        default=False,
        description="Link sign-ins to an existing user with the same email address",
    )
    enabled: bool = Field(default=True, description="Enable this provider")
    dev_only: bool = Field(
        default=False, description="Enable the provider only in development"
    )


class OIDCConfig(FrozenModel):
    """OAuth provider collection."""

    providers: dict[str, OIDCProviderConfig] = Field(
        default_factory=dict, description="OAuth provider configurations"
    )
    allowed_redirect_hosts: list[str] = Field(
        default_factory=list,
        description="Allowed hosts for absolute redirect URLs (empty = relative only)",
    )


class JWTConfig(FrozenModel):
    """JWT validation and session token configuration."""

    allowed_algorithms: list[str] = Field(
        default_factory=lambda: ["RS256", "RS512", "ES256", "ES384"],
        description="JWT algorithms allowed for identity token validation",
    )
    session_algorithm: str = Field(
        default="HS256", description="Algorithm used to sign session tokens"
    )
    session_issuer: str = Field(
        default="signin-gateway", description="Issuer claim of session tokens"
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")


class LoggingConfig(FrozenModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str | None = Field(default="logs/app.log", description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(FrozenModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./database.db", description="Database connection URL"
    )
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    password_env_var: str | None = Field(
        default=None,
        description="Environment variable name containing database password",
    )
    password_file: str | None = Field(
        default=None,
        description="Path to file containing database password",
    )
    create_tables: bool = Field(
        default=False, description="Create missing tables on application startup"
    )

    @property
    def password(self) -> str | None:
        """Resolve the password from a secrets file, an env var or the URL."""
        if self.password_file:
            try:
                with open(self.password_file) as f:
                    return f.read().strip()
            except OSError as e:
                raise ValueError("Failed to read database password from file.") from e
        if self.password_env_var:
            password = os.getenv(self.password_env_var)
            if not password:
                raise ValueError(
                    f"Environment variable {self.password_env_var} not set"
                )
            return password

        from sqlalchemy.engine import make_url

        return make_url(self.url).password

    @property
    def connection_string(self) -> str:
        """Database URL with the resolved password applied."""
        from sqlalchemy.engine import make_url

        base_url = make_url(self.url)
        if base_url.drivername.startswith("sqlite"):
            return self.url

        password = self.password
        if base_url.password and password != base_url.password:
            logger.warning(
                "Database password from secrets does not match the one in the URL. "
                "Using the password from secrets."
            )
        if password:
            base_url = base_url.set(password=password)
        return base_url.render_as_string(hide_password=False)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class AppConfig(FrozenModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    session_max_age: int = Field(
        default=30 * 24 * 3600, description="Session maximum age in seconds"
    )
    session_signing_secret: str | None = Field(
        default=None, description="Secret for signing session JWTs"
    )
    session_cookie_name: str = Field(
        default="session_token", description="Cookie holding the session JWT"
    )
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )

    @property
    def base_url(self) -> str:
        """Construct the base URL from host and port."""
        scheme = "https" if self.environment == "production" else "http"
        return f"{scheme}://{self.host}:{self.port}"


class SecurityConfig(FrozenModel):
    """Security configuration for cookies and auth flows."""

    cookie_samesite: Literal["lax", "strict", "none"] = Field(
        default="lax", description="SameSite cookie attribute"
    )
    csrf_header_name: str = Field(
        default="X-CSRF-Token", description="Header name for CSRF tokens"
    )
    csrf_token_max_age_hours: int = Field(
        default=24, description="Maximum age for CSRF tokens in hours"
    )
    enable_client_fingerprinting: bool = Field(
        default=True, description="Bind OAuth auth sessions to the client context"
    )
    auth_session_ttl_seconds: int = Field(
        default=600, description="Auth session TTL (10 minutes)"
    )


class ConfigData(FrozenModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    google_one_tap: GoogleOneTapConfig = Field(
        default_factory=GoogleOneTapConfig, description="Google One Tap configuration"
    )
    oidc: OIDCConfig = Field(
        default_factory=OIDCConfig, description="OAuth provider configuration"
    )
    jwt: JWTConfig = Field(
        default_factory=JWTConfig, description="JWT configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
