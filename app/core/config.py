"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or inconsistent."""


@dataclass(frozen=True)
class AuthConfig:
    """Authentication-related configuration."""

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl_seconds: int
    refresh_token_ttl_seconds: int
    issuer: str
    audience: str
    admin_email: str = ""
    admin_username: str = ""
    admin_password: str = ""

    @property
    def bootstrap_admin_enabled(self) -> bool:
        """Return whether all bootstrap admin values are provided."""
        return bool(self.admin_email and self.admin_username and self.admin_password)


@dataclass(frozen=True)
class StoreConfig:
    """Persistent store configuration."""

    backend: str
    mongo_uri: str
    mongo_db: str
    timeout_ms: int
    file_store_dir: str


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    store: StoreConfig
    logging: LoggingConfig
    security: SecurityConfig
    base_url: str = "http://localhost:8000"

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment.

        Raises ``ConfigError`` when token secrets or the store connection
        string are missing; callers treat that as fatal.
        """
        access_secret = os.getenv("ACCESS_TOKEN_SECRET", "").strip()
        refresh_secret = os.getenv("REFRESH_TOKEN_SECRET", "").strip()
        if not access_secret or not refresh_secret:
            raise ConfigError(
                "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be set."
            )
        if access_secret == refresh_secret:
            raise ConfigError(
                "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ."
            )
        access_ttl = int(os.getenv("ACCESS_TOKEN_TTL_SECONDS", "900"))
        refresh_ttl = int(os.getenv("REFRESH_TOKEN_TTL_SECONDS", "604800"))
        issuer = os.getenv("AUTH_ISSUER", "myapp").strip() or "myapp"
        audience = os.getenv("AUTH_AUDIENCE", "myapp-users").strip() or "myapp-users"
        admin_email = os.getenv("AUTH_ADMIN_EMAIL", "").strip().lower()
        admin_username = os.getenv("AUTH_ADMIN_USERNAME", "").strip()
        admin_password = os.getenv("AUTH_ADMIN_PASSWORD", "").strip()

        store_backend = os.getenv("STORE_BACKEND", "mongo").strip().lower() or "mongo"
        if store_backend not in {"mongo", "file"}:
            raise ConfigError(f"Unsupported STORE_BACKEND: {store_backend}")
        mongo_uri = os.getenv("MONGODB_URI", "").strip()
        if store_backend == "mongo" and not mongo_uri:
            raise ConfigError("MONGODB_URI must be set when STORE_BACKEND=mongo.")
        mongo_db = os.getenv("MONGODB_DB", "todo_api").strip() or "todo_api"
        timeout_ms = int(os.getenv("MONGODB_TIMEOUT_MS", "3000"))
        file_store_dir = (
            os.getenv("FILE_STORE_DIR", "runtime/store").strip() or "runtime/store"
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
        cors_allowed_origins = [
            origin.strip()
            for origin in os.getenv(
                "CORS_ALLOWED_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if origin.strip()
        ]
        request_max_bytes = int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024)))
        base_url = (
            os.getenv("APP_BASE_URL", "http://localhost:8000").strip().rstrip("/")
            or "http://localhost:8000"
        )

        return AppConfig(
            auth=AuthConfig(
                access_token_secret=access_secret,
                refresh_token_secret=refresh_secret,
                access_token_ttl_seconds=access_ttl,
                refresh_token_ttl_seconds=refresh_ttl,
                issuer=issuer,
                audience=audience,
                admin_email=admin_email,
                admin_username=admin_username,
                admin_password=admin_password,
            ),
            store=StoreConfig(
                backend=store_backend,
                mongo_uri=mongo_uri,
                mongo_db=mongo_db,
                timeout_ms=timeout_ms,
                file_store_dir=file_store_dir,
            ),
            logging=LoggingConfig(level=log_level),
            security=SecurityConfig(
                cors_allowed_origins=cors_allowed_origins,
                request_max_bytes=request_max_bytes,
            ),
            base_url=base_url,
        )
