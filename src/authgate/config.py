"""Application configuration.

Configuration is loaded from environment variables using pydantic-settings.
Secrets (the session secret, provider credentials) should be provided via
environment variables, not config files.

## Required Environment Variables

- APP_SECRET: Secret used to sign and encrypt the session cookie

## Optional Environment Variables

- APP_ENV: development, staging or production (default: development)
- BASE_URL: Canonical external URL (default: http://localhost:8080)
- GOOGLE_CLIENT_ID: Google OAuth client ID
- GOOGLE_CLIENT_SECRET: Google OAuth client secret
- CONTENT_ROOT: Directory served to authenticated users (default: ./_site)
- HTML5: Serve the index file for unmatched paths (default: false)

## Example .env file

```
APP_SECRET=your-secret-key-at-least-32-characters
APP_ENV=development
BASE_URL=http://localhost:8080
GOOGLE_CLIENT_ID=your-google-client-id.apps.googleusercontent.com
GOOGLE_CLIENT_SECRET=your-google-client-secret
CONTENT_ROOT=./_site
```
"""

from __future__ import annotations

import hashlib
from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authgate.errors import ConfigurationError

# Auth namespace. Everything below it is reachable without a session.
AUTH_NAMESPACE = "/_p/"
LOGIN_PATH = "/_p/login"
LOGOUT_PATH = "/_p/logout"
CALLBACK_PATH = "/_p/callback"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "authgate"
    app_version: str = "0.1.0"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Security
    app_secret: str = Field(
        ...,
        min_length=32,
        description="Secret for signing and encrypting the session cookie (min 32 chars)",
    )
    encryption_salt: str = Field(
        default="",
        description="Salt for cookie encryption (derived from APP_SECRET if not provided)",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    base_url: str = "http://localhost:8080"
    allowed_origins: list[str] = Field(
        default_factory=list,
        description="CORS allowed origins",
    )

    # Static content
    content_root: str = "./_site"
    index_file: str = "index.html"
    html5: bool = False

    # Google OAuth
    google_client_id: str | None = None
    google_client_secret: str | None = None

    # Session
    session_cookie_name: str = "_psession"
    session_max_age_seconds: int = Field(default=60 * 60 * 24 * 7, gt=0)  # 7 days
    session_encrypt: bool = True
    auth_attempt_ttl_seconds: int = Field(default=600, gt=0)

    @field_validator("encryption_salt", mode="before")
    @classmethod
    def derive_encryption_salt(cls, v: str, info) -> str:
        """Derive the encryption salt from app_secret if not provided.

        The salt has to be stable across processes, otherwise cookies
        written by one replica cannot be read by another.
        """
        if v:
            return v
        secret = info.data.get("app_secret", "")
        return hashlib.sha256(f"{secret}-salt".encode()).hexdigest()[:32]

    @field_validator("base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def google_oauth_configured(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def redirect_uri(self) -> str:
        """OAuth2 redirect URI registered with the provider."""
        return f"{self.base_url}{CALLBACK_PATH}"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}{LOGIN_PATH}"


def load_settings() -> Settings:
    """Load settings from the environment.

    Raises:
        ConfigurationError: If a required setting is missing or invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ConfigurationError(f"invalid configuration: {fields}") from e


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return load_settings()
