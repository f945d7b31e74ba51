"""Identity provider abstraction.

This module defines the contract every identity provider adapter must
implement, and the registry the auth flow resolves providers from.

## Contract

An adapter drives one OAuth2 authorization-code round trip:

- `begin_auth(state)` starts an attempt bound to a CSRF state token and
  returns a provider session
- `get_auth_url(session)` is where the browser is sent; the URL carries
  the state token, which the provider echoes back on callback
- `marshal(session)` / `unmarshal_session(data)` move the provider session
  through the cookie between Login and Callback, which are handled by
  independent requests
- `authorize(session, params)` exchanges the callback parameters for a token
- `fetch_user(session)` returns the identity once a token is present and
  raises `ProviderUnauthorized` before that

The auth flow treats provider sessions as opaque strings.

## Supported Providers

### Google
- Authorization: https://accounts.google.com/o/oauth2/v2/auth
- Token: https://oauth2.googleapis.com/token
- User info: https://www.googleapis.com/oauth2/v2/userinfo
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from authgate.errors import UnknownProviderError


@dataclass(frozen=True)
class Identity:
    """Minimal identity returned by a provider."""

    provider: str
    user_id: str
    email: str
    name: str | None = None
    picture: str | None = None


class ProviderSession(ABC):
    """In-flight OAuth2 state owned by one provider."""

    @abstractmethod
    def get_auth_url(self) -> str:
        """URL the user must visit to authorize this attempt."""

    @abstractmethod
    def marshal(self) -> str:
        """Serialize for storage between requests."""


class IdentityProvider(ABC):
    """Abstract base class for identity provider adapters.

    Attributes:
        name: Registry name, also the session key for in-flight attempts

    Example:
        ```python
        class MyProvider(IdentityProvider):
            name = "my_provider"

            def begin_auth(self, state):
                return MySession(auth_url=f"https://idp.example.com/auth?state={state}")

            async def authorize(self, session, params):
                token = await self._exchange(params["code"])
                return session.with_token(token)
        ```
    """

    name: str

    @abstractmethod
    def begin_auth(self, state: str) -> ProviderSession:
        """Start an authorization attempt bound to `state`."""

    @abstractmethod
    def unmarshal_session(self, data: str) -> ProviderSession:
        """Rebuild a provider session from `marshal` output.

        Raises:
            ProviderError: If the data is not a session of this provider
        """

    @abstractmethod
    async def authorize(
        self,
        session: ProviderSession,
        params: Mapping[str, str],
    ) -> ProviderSession:
        """Exchange callback parameters for an access token.

        Raises:
            ProviderError: If the exchange fails
        """

    @abstractmethod
    async def fetch_user(self, session: ProviderSession) -> Identity:
        """Fetch the identity for an authorized session.

        Raises:
            ProviderUnauthorized: If the session holds no usable token
            ProviderError: If the provider rejects the request
        """

    def get_auth_url(self, session: ProviderSession) -> str:
        return session.get_auth_url()

    def marshal(self, session: ProviderSession) -> str:
        return session.marshal()


class ProviderRegistry:
    """Immutable name to adapter mapping, built once at startup."""

    def __init__(
        self,
        providers: Iterable[IdentityProvider],
        default: str | None = None,
    ):
        providers_by_name = {p.name: p for p in providers}
        if default is None and providers_by_name:
            default = next(iter(providers_by_name))
        if default is not None and default not in providers_by_name:
            raise UnknownProviderError(default)

        self._providers = MappingProxyType(providers_by_name)
        self.default = default

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    def get(self, name: str) -> IdentityProvider:
        """Look up an adapter by name.

        Raises:
            UnknownProviderError: If no adapter is registered as `name`
        """
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(name) from None
