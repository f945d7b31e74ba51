"""Tests for the identity provider adapters and registry."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from authgate.errors import ProviderError, ProviderUnauthorized, UnknownProviderError
from authgate.providers.base import ProviderRegistry
from authgate.providers.google import (
    GOOGLE_TOKEN_URL,
    GOOGLE_USERINFO_URL,
    GoogleProvider,
    GoogleSession,
)

from conftest import FakeProvider

REDIRECT_URI = "http://testserver/_p/callback"


def _google(handler=None) -> GoogleProvider:
    transport = httpx.MockTransport(handler) if handler else None
    return GoogleProvider(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri=REDIRECT_URI,
        transport=transport,
    )


def google_api(requests: list[httpx.Request], token_status: int = 200, userinfo_status: int = 200):
    """Mock Google's token and userinfo endpoints."""

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        url = str(request.url)

        if url == GOOGLE_TOKEN_URL:
            if token_status != 200:
                return httpx.Response(token_status, json={"error": "invalid_grant"})
            form = parse_qs(request.content.decode())
            assert form["code"] == ["the-code"]
            assert form["grant_type"] == ["authorization_code"]
            assert form["redirect_uri"] == [REDIRECT_URI]
            return httpx.Response(
                200,
                json={
                    "access_token": "access-123",
                    "refresh_token": "refresh-456",
                    "expires_in": 3600,
                    "token_type": "Bearer",
                },
            )

        if url == GOOGLE_USERINFO_URL:
            if userinfo_status != 200:
                return httpx.Response(userinfo_status, json={"error": "nope"})
            assert request.headers["Authorization"] == "Bearer access-123"
            return httpx.Response(
                200,
                json={
                    "id": "1234",
                    "email": "someone@example.com",
                    "name": "Some One",
                    "picture": "https://example.com/photo.jpg",
                    "verified_email": True,
                },
            )

        return httpx.Response(404)

    return handler


class TestGoogleBeginAuth:
    """Tests for starting a Google authorization attempt."""

    def test_auth_url_embeds_state(self):
        google = _google()
        session = google.begin_auth("state-abc")

        url = urlsplit(google.get_auth_url(session))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert params["state"] == ["state-abc"]
        assert params["client_id"] == ["test-client-id"]
        assert params["redirect_uri"] == [REDIRECT_URI]
        assert params["response_type"] == ["code"]
        assert "https://www.googleapis.com/auth/userinfo.email" in params["scope"][0]

    def test_unconfigured_provider_fails(self):
        google = GoogleProvider(client_id=None, client_secret=None, redirect_uri=REDIRECT_URI)
        assert google.is_configured is False

        with pytest.raises(ProviderError):
            google.begin_auth("state-abc")


class TestGoogleSession:
    """Tests for marshaling Google sessions."""

    def test_marshal_roundtrip(self):
        google = _google()
        session = GoogleSession(
            auth_url="https://accounts.google.com/o/oauth2/v2/auth?state=x",
            access_token="access-123",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )

        restored = google.unmarshal_session(google.marshal(session))
        assert restored == session

    def test_unmarshal_garbage(self):
        with pytest.raises(ProviderError):
            _google().unmarshal_session("{not json")

        with pytest.raises(ProviderError):
            _google().unmarshal_session('{"access_token": "x"}')

    def test_expired_token_is_not_valid(self):
        session = GoogleSession(
            auth_url="https://accounts.google.com/",
            access_token="access-123",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        assert session.has_valid_token is False


class TestGoogleExchange:
    """Tests for the token exchange and user lookup."""

    @pytest.mark.asyncio
    async def test_fetch_user_requires_token(self):
        google = _google()
        with pytest.raises(ProviderUnauthorized):
            await google.fetch_user(google.begin_auth("state-abc"))

    @pytest.mark.asyncio
    async def test_authorize_then_fetch_user(self):
        requests: list[httpx.Request] = []
        google = _google(google_api(requests))

        session = google.begin_auth("state-abc")
        session = await google.authorize(session, {"code": "the-code", "state": "state-abc"})

        assert session.access_token == "access-123"
        assert session.refresh_token == "refresh-456"
        assert session.has_valid_token is True

        identity = await google.fetch_user(session)
        assert identity.email == "someone@example.com"
        assert identity.user_id == "1234"
        assert identity.provider == "google"
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_authorize_keeps_auth_url(self):
        google = _google(google_api([]))
        session = google.begin_auth("state-abc")

        updated = await google.authorize(session, {"code": "the-code"})
        assert updated.get_auth_url() == session.get_auth_url()

    @pytest.mark.asyncio
    async def test_authorize_without_code(self):
        requests: list[httpx.Request] = []
        google = _google(google_api(requests))

        with pytest.raises(ProviderError):
            await google.authorize(google.begin_auth("s"), {"state": "s"})
        assert requests == []

    @pytest.mark.asyncio
    async def test_authorize_denied_by_user(self):
        google = _google(google_api([]))
        with pytest.raises(ProviderError, match="access_denied"):
            await google.authorize(google.begin_auth("s"), {"error": "access_denied"})

    @pytest.mark.asyncio
    async def test_token_endpoint_failure(self):
        google = _google(google_api([], token_status=400))

        with pytest.raises(ProviderError) as exc_info:
            await google.authorize(google.begin_auth("s"), {"code": "the-code"})
        assert exc_info.value.upstream_status == 400

    @pytest.mark.asyncio
    async def test_rejected_token_is_unauthorized(self):
        google = _google(google_api([], userinfo_status=401))
        session = GoogleSession(auth_url="https://accounts.google.com/", access_token="access-123")

        with pytest.raises(ProviderUnauthorized):
            await google.fetch_user(session)

    @pytest.mark.asyncio
    async def test_rejects_foreign_session(self):
        google = _google()
        foreign = FakeProvider().begin_auth("s")

        with pytest.raises(ProviderError):
            await google.fetch_user(foreign)


class TestProviderRegistry:
    """Tests for the provider registry."""

    def test_default_is_first_registered(self):
        registry = ProviderRegistry([FakeProvider(), _google()])

        assert registry.default == "fake"
        assert registry.names == ["fake", "google"]
        assert "google" in registry
        assert len(registry) == 2

    def test_explicit_default(self):
        registry = ProviderRegistry([FakeProvider(), _google()], default="google")
        assert registry.get(registry.default).name == "google"

    def test_unknown_provider(self):
        registry = ProviderRegistry([FakeProvider()])
        with pytest.raises(UnknownProviderError):
            registry.get("github")

    def test_unknown_default(self):
        with pytest.raises(UnknownProviderError):
            ProviderRegistry([FakeProvider()], default="github")
