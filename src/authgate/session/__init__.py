"""Cookie-resident sessions.

## Security

- Values are gzip-compressed individually, then signed as a JWT
- The signed token is Fernet-encrypted unless SESSION_ENCRYPT=false
- Forged or tampered cookies read as an empty session
- Cookies are HTTP-only, and Secure in production
"""

from authgate.session.codec import SessionCodec, compress_value, decompress_value
from authgate.session.middleware import SessionMiddleware
from authgate.session.store import CookieOptions, Session, SessionStore

__all__ = [
    "CookieOptions",
    "Session",
    "SessionCodec",
    "SessionMiddleware",
    "SessionStore",
    "compress_value",
    "decompress_value",
]
