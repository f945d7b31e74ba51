"""Error kinds raised by the gateway.

Every error carries the HTTP status the host's exception handler should
render. Session and filesystem misses are recoverable and handled locally;
everything else propagates to the handler registered in
`authgate.api.app.create_app`.
"""

from __future__ import annotations

from starlette.responses import JSONResponse


class AuthGateError(Exception):
    """Base exception for gateway errors."""

    status_code: int = 500

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.headers = headers


class ConfigurationError(AuthGateError):
    """Missing or invalid required settings. Fatal at startup."""

    status_code = 500


class ProviderError(AuthGateError):
    """Identity provider lookup or exchange failed."""

    status_code = 400

    def __init__(
        self,
        message: str,
        provider: str,
        upstream_status: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.upstream_status = upstream_status
        self.response_body = response_body


class UnknownProviderError(ProviderError):
    """No adapter is registered under the requested name."""

    status_code = 404

    def __init__(self, provider: str):
        super().__init__(f"no provider registered as {provider!r}", provider=provider)


class ProviderUnauthorized(ProviderError):
    """The provider session does not hold a usable access token yet."""

    status_code = 401


class StateMismatch(AuthGateError):
    """CSRF state check failed."""

    status_code = 403


class AuthAttemptExpired(AuthGateError):
    """The pending login attempt outlived its TTL."""

    status_code = 400


class SessionError(AuthGateError):
    """Base for session lookups. Never shown to the client as a distinct signal."""

    status_code = 400


class SessionValueNotFound(SessionError):
    """No value is stored at the requested key."""

    def __init__(self, key: str):
        super().__init__(f"no session value for {key!r}")
        self.key = key


class SessionDecodeError(SessionError):
    """A stored value is not valid compressed data."""


class MethodNotAllowed(AuthGateError):
    """Static resources only answer GET and HEAD."""

    status_code = 405

    def __init__(self, method: str):
        super().__init__(
            f"method {method} not allowed",
            headers={"Allow": "GET, HEAD"},
        )
        self.method = method


class SessionWriteError(SessionError):
    """The session no longer fits in a single cookie."""

    status_code = 500


def error_response(exc: AuthGateError) -> JSONResponse:
    """Render a gateway error the way the app's exception handler does."""
    return JSONResponse(
        {"detail": exc.message},
        status_code=exc.status_code,
        headers=exc.headers,
    )
