"""Authentication routes.

Mounted under the /_p namespace, which is always reachable without a
session.

## Endpoints

1. GET /_p/login - Redirect to the provider's consent screen
2. GET|POST /_p/callback - Handle the provider's redirect
3. GET /_p/logout - Clear the session
4. GET /_p/me - Current authentication status
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from authgate.auth.dependencies import get_auth_flow, get_current_email
from authgate.auth.flow import AuthFlow

logger = logging.getLogger(__name__)

router = APIRouter()


class AuthStatusResponse(BaseModel):
    """Authentication status response."""

    authenticated: bool
    email: str | None = None


@router.get("/login")
async def login(
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Initiate OAuth login.

    Accepts an optional `state` query parameter; otherwise a random one is
    generated.
    """
    return await flow.login(request)


@router.api_route("/callback", methods=["GET", "POST"])
async def callback(
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Handle the OAuth callback and redirect to the site."""
    return await flow.callback(request)


@router.get("/logout")
async def logout(
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> RedirectResponse:
    """Log out the current user."""
    return await flow.logout(request)


@router.get("/me", response_model=AuthStatusResponse)
async def get_auth_status(
    email: str | None = Depends(get_current_email),
) -> AuthStatusResponse:
    """Get the current authentication status."""
    if email:
        return AuthStatusResponse(authenticated=True, email=email)

    return AuthStatusResponse(authenticated=False)
