"""Google OAuth identity provider.

Implements the OAuth 2.0 authorization code flow for Google sign-in.

## Required Setup

1. Create a project in Google Cloud Console
2. Create OAuth 2.0 credentials (Web application)
3. Add `BASE_URL/_p/callback` as an authorized redirect URI
4. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET environment variables

## Scopes Used

- https://www.googleapis.com/auth/userinfo.email: Get user's email address
- https://www.googleapis.com/auth/userinfo.profile: Get user's name and picture
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from authgate.config import Settings
from authgate.errors import ProviderError, ProviderUnauthorized
from authgate.providers.base import Identity, IdentityProvider, ProviderSession

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


@dataclass(frozen=True)
class GoogleSession(ProviderSession):
    """Google's per-attempt state, before and after the token exchange."""

    auth_url: str
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def get_auth_url(self) -> str:
        return self.auth_url

    def marshal(self) -> str:
        return json.dumps(
            {
                "auth_url": self.auth_url,
                "access_token": self.access_token,
                "refresh_token": self.refresh_token,
                "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            },
            separators=(",", ":"),
        )

    @property
    def has_valid_token(self) -> bool:
        """Check if an unexpired access token is present."""
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        return datetime.now(timezone.utc) < self.expires_at


class GoogleProvider(IdentityProvider):
    """Google OAuth 2.0 adapter.

    Example:
        ```python
        google = GoogleProvider(client_id, client_secret, redirect_uri)

        session = google.begin_auth(state="random-state")
        # Redirect user to google.get_auth_url(session)

        # On callback
        session = await google.authorize(session, {"code": code, "state": state})
        identity = await google.fetch_user(session)
        ```
    """

    name = "google"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str,
        scopes: list[str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Google adapter.

        Args:
            client_id: Google OAuth client ID
            client_secret: Google OAuth client secret
            redirect_uri: OAuth callback URL
            scopes: OAuth scopes to request
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(DEFAULT_SCOPES)
        self.timeout = timeout
        self._transport = transport

        if not self.is_configured:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET environment variables."
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleProvider:
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.redirect_uri,
        )

    @property
    def is_configured(self) -> bool:
        """Check if Google OAuth is properly configured."""
        return bool(self.client_id and self.client_secret)

    def begin_auth(self, state: str) -> GoogleSession:
        if not self.is_configured:
            raise ProviderError("Google OAuth not configured", provider=self.name)

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "offline",
        }
        return GoogleSession(auth_url=f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}")

    def unmarshal_session(self, data: str) -> GoogleSession:
        try:
            raw = json.loads(data)
            expires_at = raw.get("expires_at")
            return GoogleSession(
                auth_url=raw["auth_url"],
                access_token=raw.get("access_token"),
                refresh_token=raw.get("refresh_token"),
                expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProviderError("could not unmarshal Google session", provider=self.name) from e

    async def authorize(
        self,
        session: ProviderSession,
        params: Mapping[str, str],
    ) -> GoogleSession:
        """Exchange the authorization code for tokens.

        Raises:
            ProviderError: If the user denied access or the exchange fails
        """
        session = self._check_session(session)

        if params.get("error"):
            raise ProviderError(f"authorization denied: {params['error']}", provider=self.name)

        code = params.get("code")
        if not code:
            raise ProviderError("callback carries no authorization code", provider=self.name)

        response = await self._send(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            },
        )

        if response.status_code != 200:
            logger.error(f"Token exchange failed: {response.status_code}")
            raise ProviderError(
                f"Token exchange failed: {response.status_code}",
                provider=self.name,
                upstream_status=response.status_code,
                response_body=response.text,
            )

        data = self._json(response)
        if "access_token" not in data:
            raise ProviderError("token response carries no access_token", provider=self.name)

        expires_at = None
        if "expires_in" in data:
            expires_at = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(
                seconds=int(data["expires_in"])
            )

        return replace(
            session,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", session.refresh_token),
            expires_at=expires_at,
        )

    async def fetch_user(self, session: ProviderSession) -> Identity:
        session = self._check_session(session)
        if not session.has_valid_token:
            raise ProviderUnauthorized("no valid access token in session", provider=self.name)

        response = await self._send(
            "GET",
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {session.access_token}"},
        )

        if response.status_code == 401:
            raise ProviderUnauthorized(
                "access token rejected",
                provider=self.name,
                upstream_status=401,
            )
        if response.status_code != 200:
            logger.error(f"User info request failed: {response.status_code}")
            raise ProviderError(
                f"User info request failed: {response.status_code}",
                provider=self.name,
                upstream_status=response.status_code,
                response_body=response.text,
            )

        data = self._json(response)
        if not data.get("email"):
            raise ProviderError("user info carries no email address", provider=self.name)

        return Identity(
            provider=self.name,
            user_id=str(data.get("id", "")),
            email=data["email"],
            name=data.get("name"),
            picture=data.get("picture"),
        )

    def _check_session(self, session: ProviderSession) -> GoogleSession:
        if not isinstance(session, GoogleSession):
            raise ProviderError("not a Google session", provider=self.name)
        return session

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("invalid JSON from Google", provider=self.name) from e
        if not isinstance(data, dict):
            raise ProviderError("unexpected response from Google", provider=self.name)
        return data

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Request to Google failed: {e!r}")
            raise ProviderError(f"request to Google failed: {e}", provider=self.name) from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            return await client.request(method, url, **kwargs)
