"""Cookie-backed session store.

The store owns the cookie policy (name, max-age, flags) and the codec.
A request's session is loaded once by `SessionMiddleware`, mutated in place
by handlers through `get`/`put`/`destroy`, and written back as a single
`Set-Cookie` header when the response starts.

## Cookie flags

- HttpOnly is always set
- Secure only when APP_ENV=production, so local development over plain
  HTTP keeps working
- SameSite=Lax, Path=/
- Max-Age defaults to 7 days
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.requests import HTTPConnection

from authgate.config import Settings
from authgate.errors import SessionValueNotFound, SessionWriteError
from authgate.session.codec import SessionCodec, compress_value, decompress_value

logger = logging.getLogger(__name__)

SESSION_SCOPE_KEY = "session"

# Browsers drop cookies larger than this (name, value and attributes).
MAX_COOKIE_BYTES = 4093

EXPIRED_DATE = "Thu, 01 Jan 1970 00:00:00 GMT"


class Session:
    """One browser session: a mapping of keys to compressed values."""

    def __init__(self, values: dict[str, str] | None = None):
        self._values = dict(values or {})
        self.is_new = not self._values
        self.modified = False
        self.expired = False

    def __contains__(self, key: str) -> bool:
        return key in self._values

    @property
    def values(self) -> dict[str, str]:
        return dict(self._values)

    def get(self, key: str) -> str:
        """Return the decompressed value stored at `key`.

        Raises:
            SessionValueNotFound: If nothing is stored at `key`
            SessionDecodeError: If the stored value is corrupted
        """
        if key not in self._values:
            raise SessionValueNotFound(key)
        return decompress_value(self._values[key])

    def set_compressed(self, key: str, data: str) -> None:
        self._values[key] = data
        self.modified = True
        self.expired = False

    def expire(self) -> None:
        """Drop every value and mark the cookie for deletion."""
        self._values.clear()
        self.modified = True
        self.expired = True


@dataclass(frozen=True)
class CookieOptions:
    """Cookie attributes, fixed at process start."""

    name: str = "_psession"
    max_age: int = 60 * 60 * 24 * 7
    path: str = "/"
    http_only: bool = True
    secure: bool = False
    same_site: str = "lax"


class SessionStore:
    """Reads and writes sessions carried in a signed cookie."""

    def __init__(self, codec: SessionCodec, options: CookieOptions):
        self.codec = codec
        self.options = options

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionStore:
        codec = SessionCodec(
            settings.app_secret,
            settings.encryption_salt,
            max_age_seconds=settings.session_max_age_seconds,
            encrypt=settings.session_encrypt,
        )
        options = CookieOptions(
            name=settings.session_cookie_name,
            max_age=settings.session_max_age_seconds,
            http_only=True,
            secure=settings.is_production,
        )
        return cls(codec, options)

    def load(self, cookie: str | None) -> Session:
        """Build the session for an incoming cookie value."""
        return Session(self.codec.loads(cookie))

    def session_for(self, conn: HTTPConnection) -> Session:
        """Return the session attached to a request by `SessionMiddleware`."""
        session = conn.scope.get(SESSION_SCOPE_KEY)
        if not isinstance(session, Session):
            raise RuntimeError("SessionMiddleware must be installed to access the session")
        return session

    def get(self, conn: HTTPConnection, key: str) -> str:
        """Read a value from the request's session.

        Raises:
            SessionValueNotFound: If no value exists at `key`
            SessionDecodeError: If the stored value is corrupted
        """
        return self.session_for(conn).get(key)

    def put(self, conn: HTTPConnection, key: str, value: str) -> None:
        """Store a value in the request's session.

        The cookie is created on the first successful write.

        Raises:
            SessionWriteError: If the resulting cookie would be too large
        """
        session = self.session_for(conn)
        data = compress_value(value)

        candidate = session.values
        candidate[key] = data
        size = len(self._cookie(self.codec.dumps(candidate), self.options.max_age))
        if size > MAX_COOKIE_BYTES:
            raise SessionWriteError(f"session cookie would be {size} bytes")

        session.set_compressed(key, data)

    def destroy(self, conn: HTTPConnection) -> None:
        """Expire the request's session. Never fails for an absent session."""
        self.session_for(conn).expire()

    def cookie_header(self, session: Session) -> str:
        """Render the `Set-Cookie` header value for a modified session."""
        if session.expired:
            return self._cookie("", -1) + f"; Expires={EXPIRED_DATE}"
        return self._cookie(self.codec.dumps(session.values), self.options.max_age)

    def _cookie(self, value: str, max_age: int) -> str:
        opts = self.options
        parts = [f"{opts.name}={value}", f"Path={opts.path}", f"Max-Age={max_age}"]
        if opts.http_only:
            parts.append("HttpOnly")
        if opts.secure:
            parts.append("Secure")
        parts.append(f"SameSite={opts.same_site}")
        return "; ".join(parts)
