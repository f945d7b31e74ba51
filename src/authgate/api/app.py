"""FastAPI application factory.

Creates the gateway application: the auth routes, the session and static
middleware, and the error handler.

## Usage

```python
from authgate.api import create_app

app = create_app()

# Run with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
```

## Middleware order (outermost first)

1. SessionMiddleware - loads the cookie, writes it back on every response
2. CORSMiddleware - only when ALLOWED_ORIGINS is set
3. StaticMiddleware - auth gate and static files, falls through to routes

## Configuration

The app is configured via environment variables. See `authgate.config`
for available settings.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from authgate.auth.flow import AuthFlow
from authgate.config import Settings, get_settings
from authgate.errors import AuthGateError, ConfigurationError, error_response
from authgate.providers.base import ProviderRegistry
from authgate.providers.google import GoogleProvider
from authgate.session.middleware import SessionMiddleware
from authgate.session.store import SessionStore
from authgate.static.middleware import StaticConfig, StaticMiddleware

logger = logging.getLogger(__name__)


def build_providers(settings: Settings) -> ProviderRegistry:
    """Register every configured identity provider.

    Raises:
        ConfigurationError: If no provider is configured
    """
    providers = []
    if settings.google_oauth_configured:
        providers.append(GoogleProvider.from_settings(settings))

    if not providers:
        raise ConfigurationError(
            "no identity provider configured; set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET"
        )

    return ProviderRegistry(providers)


async def auth_gate_error_handler(request: Request, exc: AuthGateError) -> Response:
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return error_response(exc)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(
        f"Serving {settings.content_root} behind providers {app.state.providers.names}"
    )
    if not os.path.isdir(settings.content_root):
        logger.warning(f"Content root {settings.content_root} is not a directory")

    yield

    logger.info("Shutting down")


def create_app(
    settings: Settings | None = None,
    providers: ProviderRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use (or from the environment)
        providers: Provider registry to use (or built from settings)

    Returns:
        Configured FastAPI application

    Raises:
        ConfigurationError: If settings are invalid or no provider is configured
    """
    settings = settings or get_settings()
    providers = providers or build_providers(settings)

    store = SessionStore.from_settings(settings)
    auth_flow = AuthFlow(
        providers,
        store,
        base_url=settings.base_url,
        attempt_ttl_seconds=settings.auth_attempt_ttl_seconds,
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.providers = providers
    app.state.session_store = store
    app.state.auth_flow = auth_flow

    from authgate.api.routes import auth

    app.include_router(auth.router, prefix="/_p", tags=["Authentication"])
    app.add_exception_handler(AuthGateError, auth_gate_error_handler)

    # Added innermost first
    app.add_middleware(
        StaticMiddleware,
        config=StaticConfig(
            root=settings.content_root,
            index=settings.index_file,
            html5=settings.html5,
        ),
        is_authenticated=auth_flow.is_authenticated,
        login_url=settings.login_url,
    )
    if settings.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "HEAD", "POST"],
            allow_headers=["*"],
        )
    app.add_middleware(SessionMiddleware, store=store)

    return app
