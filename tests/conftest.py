"""Pytest fixtures for the gateway tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Google is replaced by a fake provider)
2. Static content lives in a per-test temporary directory
3. Isolated test environment with controlled configuration
"""

import json
import os
from dataclasses import dataclass, replace
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest

# Set test environment BEFORE importing application modules
# This ensures no real services are contacted during test collection
os.environ.setdefault("APP_SECRET", "test-secret-key-at-least-32-characters-long")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

from fastapi import Depends
from fastapi.testclient import TestClient

from authgate.api.app import create_app
from authgate.auth.dependencies import require_email
from authgate.config import Settings
from authgate.errors import ProviderError, ProviderUnauthorized
from authgate.providers.base import (
    Identity,
    IdentityProvider,
    ProviderRegistry,
    ProviderSession,
)

TEST_SECRET = "test-secret-key-at-least-32-characters-long"
BASE_URL = "http://testserver"
GOOD_CODE = "good-code"


# =============================================================================
# Fake identity provider
# =============================================================================


@dataclass(frozen=True)
class FakeSession(ProviderSession):
    auth_url: str
    token: str | None = None

    def get_auth_url(self) -> str:
        return self.auth_url

    def marshal(self) -> str:
        return json.dumps({"auth_url": self.auth_url, "token": self.token})


class FakeProvider(IdentityProvider):
    """In-memory provider that accepts one authorization code."""

    name = "fake"

    def __init__(self, email: str = "someone@example.com"):
        self.email = email
        self.authorize_calls = 0
        self.fail_begin = False
        self.revoked = False

    def begin_auth(self, state: str) -> FakeSession:
        if self.fail_begin:
            raise ProviderError("provider unavailable", provider=self.name)
        return FakeSession(auth_url=f"https://idp.example.com/auth?{urlencode({'state': state})}")

    def unmarshal_session(self, data: str) -> FakeSession:
        try:
            raw = json.loads(data)
            return FakeSession(auth_url=raw["auth_url"], token=raw.get("token"))
        except (ValueError, KeyError) as e:
            raise ProviderError("bad session", provider=self.name) from e

    async def authorize(self, session, params) -> FakeSession:
        self.authorize_calls += 1
        if params.get("code") != GOOD_CODE:
            raise ProviderError("invalid authorization code", provider=self.name)
        return replace(session, token="fake-access-token")

    async def fetch_user(self, session) -> Identity:
        if not session.token or self.revoked:
            raise ProviderUnauthorized("no token", provider=self.name)
        return Identity(provider=self.name, user_id="42", email=self.email)


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from authgate.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def site(tmp_path):
    """Static content root with a few files and directories."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "secret.html").write_text("<p>secret</p>")
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text("<h1>docs</h1>")
    (root / "empty").mkdir()
    (tmp_path / "outside.txt").write_text("outside the root")
    return root


@pytest.fixture
def settings(site) -> Settings:
    """Settings pointing at the temporary site."""
    return Settings(
        app_secret=TEST_SECRET,
        base_url=BASE_URL,
        content_root=str(site),
        google_client_id="test-client-id",
        google_client_secret="test-client-secret",
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def make_client(settings, fake_provider):
    """Build a client for an app with optional settings overrides."""

    def _make(**overrides) -> TestClient:
        app_settings = settings.model_copy(update=overrides)
        app = create_app(app_settings, ProviderRegistry([fake_provider]))

        @app.get("/api/ping")
        async def ping():
            return {"pong": True}

        @app.get("/api/whoami")
        async def whoami(email: str = Depends(require_email)):
            return {"email": email}

        return TestClient(app, base_url=BASE_URL, follow_redirects=False)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


def state_of(location: str) -> str:
    """State token carried by an authorization URL."""
    return parse_qs(urlsplit(location).query)["state"][0]


def log_in(client: TestClient) -> str:
    """Run Login and Callback; return the state used."""
    response = client.get("/_p/login")
    assert response.status_code == 307
    state = state_of(response.headers["location"])

    response = client.get("/_p/callback", params={"state": state, "code": GOOD_CODE})
    assert response.status_code == 307
    return state


@pytest.fixture
def authenticated_client(client) -> TestClient:
    log_in(client)
    return client
