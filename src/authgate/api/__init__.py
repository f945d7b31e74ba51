"""FastAPI application and routes.

## API Structure

- /_p - Authentication endpoints (always public)
- everything else - Static content, for authenticated users only

## Authentication

A request without a valid session is redirected to /_p/login. Sessions are
created during the OAuth callback.
"""

from authgate.api.app import create_app

__all__ = ["create_app"]
