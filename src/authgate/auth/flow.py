"""OAuth2 login flow.

States: Anonymous -> AuthPending -> Authenticated, and back to Anonymous
on logout.

## Endpoints

1. GET /_p/login - Store a pending attempt, redirect to the provider
2. GET|POST /_p/callback - Validate state, exchange the code, store the identity
3. GET /_p/logout - Expire the session

All state that must survive between Login and Callback lives in the
session cookie; nothing is kept in server memory.

## CSRF

The state token embedded in the stored authorization URL must equal the
`state` parameter of the callback request. A mismatch is rejected before
any token exchange takes place.
"""

from __future__ import annotations

import base64
import hmac
import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import replace
from urllib.parse import parse_qs, urlsplit

from starlette.requests import HTTPConnection, Request
from starlette.responses import RedirectResponse

from authgate.auth.attempt import AuthAttempt
from authgate.errors import (
    AuthAttemptExpired,
    ProviderUnauthorized,
    SessionError,
    StateMismatch,
    UnknownProviderError,
)
from authgate.providers.base import (
    Identity,
    IdentityProvider,
    ProviderRegistry,
    ProviderSession,
)
from authgate.session.store import SessionStore

logger = logging.getLogger(__name__)

# Session key holding the authenticated email address
IDENTITY_KEY = "uid"

STATE_NONCE_BYTES = 64

ProviderNameResolver = Callable[[Request], str]


def generate_state() -> str:
    """Generate an unguessable state token for the authorization URL."""
    return base64.urlsafe_b64encode(secrets.token_bytes(STATE_NONCE_BYTES)).decode("ascii")


def state_from_auth_url(auth_url: str) -> str:
    """Extract the `state` query parameter from an authorization URL."""
    values = parse_qs(urlsplit(auth_url).query).get("state")
    return values[0] if values else ""


async def callback_params(request: Request) -> dict[str, str]:
    """Parameters returned by the provider.

    Taken from the query string, or from the form body of a POST that has
    no query string (response_mode=form_post).
    """
    if not request.query_params and request.method == "POST":
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    return dict(request.query_params)


class AuthFlow:
    """Login, Callback and Logout handlers plus the authentication predicate.

    Example:
        ```python
        flow = AuthFlow(registry, store, base_url="https://site.example.com")

        @router.get("/login")
        async def login(request: Request):
            return await flow.login(request)
        ```
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: SessionStore,
        base_url: str,
        attempt_ttl_seconds: int = 600,
        resolve_provider_name: ProviderNameResolver | None = None,
    ):
        self.registry = registry
        self.store = store
        self.base_url = base_url
        self.attempt_ttl_seconds = attempt_ttl_seconds
        self._resolve_provider_name = resolve_provider_name or self.default_provider_name

    def default_provider_name(self, request: Request) -> str:
        """Use the `provider` query parameter, else the registry default."""
        name = request.query_params.get("provider") or self.registry.default
        if not name:
            raise UnknownProviderError("")
        return name

    def resolve_provider(self, request: Request) -> IdentityProvider:
        return self.registry.get(self._resolve_provider_name(request))

    def is_authenticated(self, conn: HTTPConnection) -> bool:
        """True iff the identity key is present and decodable."""
        return self.current_email(conn) is not None

    def current_email(self, conn: HTTPConnection) -> str | None:
        try:
            return self.store.get(conn, IDENTITY_KEY)
        except SessionError:
            return None

    async def login(self, request: Request) -> RedirectResponse:
        """Start an attempt and redirect to the provider.

        Nothing is written to the session if the provider fails.
        """
        provider = self.resolve_provider(request)
        state = request.query_params.get("state") or generate_state()

        session = provider.begin_auth(state)
        auth_url = provider.get_auth_url(session)

        attempt = AuthAttempt(state=state, provider_session=provider.marshal(session))
        self.store.put(request, provider.name, attempt.to_json())

        logger.debug(f"Starting {provider.name} login")
        return RedirectResponse(url=auth_url, status_code=307)

    async def callback(self, request: Request) -> RedirectResponse:
        """Complete an attempt and store the identity.

        Raises:
            SessionError: If no attempt is stored for the provider
            StateMismatch: If the CSRF state does not match
            AuthAttemptExpired: If the pending attempt is too old
            ProviderError: If the exchange or user lookup fails
        """
        provider = self.resolve_provider(request)

        attempt = AuthAttempt.from_json(self.store.get(request, provider.name))
        session = provider.unmarshal_session(attempt.provider_session)

        params = await callback_params(request)
        self.validate_state(provider.get_auth_url(session), params.get("state", ""))

        if attempt.is_expired(self.attempt_ttl_seconds):
            raise AuthAttemptExpired("login attempt expired, please log in again")

        identity = await self._complete(request, provider, attempt, session, params)

        self.store.put(request, IDENTITY_KEY, identity.email)
        logger.info(f"User {identity.email} logged in via {provider.name}")

        return RedirectResponse(url=self.base_url, status_code=307)

    async def _complete(
        self,
        request: Request,
        provider: IdentityProvider,
        attempt: AuthAttempt,
        session: ProviderSession,
        params: Mapping[str, str],
    ) -> Identity:
        try:
            # Already authorized: a retried callback reuses the stored token.
            return await provider.fetch_user(session)
        except ProviderUnauthorized:
            if attempt.authorized:
                logger.warning(f"Rejected reuse of an authorized {provider.name} attempt")
                raise StateMismatch("state token already used") from None

        session = await provider.authorize(session, params)
        attempt = replace(attempt, provider_session=provider.marshal(session), authorized=True)
        self.store.put(request, provider.name, attempt.to_json())

        return await provider.fetch_user(session)

    def validate_state(self, auth_url: str, request_state: str) -> None:
        """Compare the state of the stored authorization URL with the callback's.

        Raises:
            StateMismatch: If the original state is set and differs
        """
        original = state_from_auth_url(auth_url)
        if original and not hmac.compare_digest(
            original.encode("utf-8"), request_state.encode("utf-8")
        ):
            logger.warning("OAuth state token mismatch")
            raise StateMismatch("state token mismatch")

    async def logout(self, request: Request) -> RedirectResponse:
        """Expire the session. Succeeds even without one."""
        email = self.current_email(request)
        self.store.destroy(request)

        if email:
            logger.info(f"User {email} logged out")

        return RedirectResponse(url=self.base_url, status_code=307)
