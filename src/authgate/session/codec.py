"""Session cookie codec.

A session is a mapping of string keys to string values carried entirely in
one cookie. Encoding happens in three layers:

1. Each value is gzip-compressed and base64url-encoded on its own, which
   keeps large provider-session blobs small.
2. The mapping is placed in a JWT signed with the application secret
   (HS256). The token's `exp` claim mirrors the cookie max-age, so a
   replayed stale cookie is rejected server-side too.
3. Optionally, the signed token is encrypted with Fernet. The Fernet key
   is derived from the application secret with PBKDF2.

## Tamper handling

Any cookie that fails decryption or signature verification decodes to an
empty mapping. Callers only ever observe "value not found", never a
distinct "bad signature" signal.

## Payload Structure

```json
{
  "v": {"google": "<gzip+b64>", "uid": "<gzip+b64>"},
  "iat": 1234567890,
  "exp": 1235172690,
  "type": "session"
}
```
"""

from __future__ import annotations

import base64
import binascii
import gzip
import logging
import zlib
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from jose import jwt
from jose.exceptions import JOSEError

from authgate.errors import SessionDecodeError, SessionValueNotFound

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"
TOKEN_TYPE = "session"


def compress_value(value: str) -> str:
    """Gzip a session value and make it JSON-safe."""
    return base64.urlsafe_b64encode(gzip.compress(value.encode("utf-8"))).decode("ascii")


def decompress_value(data: str) -> str:
    """Reverse `compress_value`.

    Raises:
        SessionDecodeError: If the data is not valid compressed data
    """
    try:
        raw = base64.urlsafe_b64decode(data.encode("ascii"))
        return gzip.decompress(raw).decode("utf-8")
    except (binascii.Error, OSError, EOFError, zlib.error, UnicodeError) as e:
        raise SessionDecodeError("stored session value is corrupted") from e


@lru_cache(maxsize=8)
def _create_fernet(secret_key: str, salt: str) -> Fernet:
    """Create a Fernet cipher from the secret key and salt.

    Uses PBKDF2 to derive a proper encryption key from the secret.
    Cached because the derivation is deliberately slow.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,  # 256 bits for Fernet
        salt=salt.encode("utf-8"),
        iterations=480_000,  # OWASP recommendation
    )

    key = base64.urlsafe_b64encode(kdf.derive(secret_key.encode("utf-8")))
    return Fernet(key)


class SessionCodec:
    """Turns a session mapping into a cookie value and back.

    Example:
        ```python
        codec = SessionCodec(secret, salt, max_age_seconds=3600)

        token = codec.encode("uid", "someone@example.com")
        codec.decode("uid", token)  # "someone@example.com"
        ```
    """

    def __init__(
        self,
        secret_key: str,
        salt: str,
        max_age_seconds: int,
        encrypt: bool = True,
    ):
        self.secret_key = secret_key
        self.max_age_seconds = max_age_seconds
        self._fernet = _create_fernet(secret_key, salt) if encrypt else None

    def dumps(self, values: dict[str, str]) -> str:
        """Sign (and encrypt) an already-compressed mapping."""
        now = datetime.now(timezone.utc)
        payload = {
            "v": values,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.max_age_seconds)).timestamp()),
            "type": TOKEN_TYPE,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)
        if self._fernet is not None:
            token = self._fernet.encrypt(token.encode("utf-8")).decode("ascii")
        return token

    def loads(self, cookie: str | None) -> dict[str, str]:
        """Verify a cookie value and return its compressed mapping.

        Returns an empty mapping for a missing, expired, forged or
        otherwise unreadable cookie.
        """
        if not cookie:
            return {}

        token = cookie
        if self._fernet is not None:
            try:
                token = self._fernet.decrypt(cookie.encode("utf-8")).decode("utf-8")
            except (InvalidToken, UnicodeError):
                logger.debug("Session cookie failed decryption")
                return {}

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JOSEError as e:
            logger.debug(f"Session cookie verification failed: {e}")
            return {}

        if payload.get("type") != TOKEN_TYPE:
            logger.debug("Invalid session token type")
            return {}

        values = payload.get("v")
        if not isinstance(values, dict):
            return {}

        return {k: v for k, v in values.items() if isinstance(k, str) and isinstance(v, str)}

    def encode(self, key: str, value: str) -> str:
        """Encode a single key/value pair as a complete cookie value."""
        return self.dumps({key: compress_value(value)})

    def decode(self, key: str, token: str | None) -> str:
        """Decode the value stored at `key` in a cookie value.

        Raises:
            SessionValueNotFound: If the cookie is invalid or has no such key
            SessionDecodeError: If the stored value is corrupted
        """
        values = self.loads(token)
        if key not in values:
            raise SessionValueNotFound(key)
        return decompress_value(values[key])
