"""In-flight authorization attempts.

Login and Callback are separate requests, possibly served by separate
processes, so everything Callback needs is carried in the session cookie
as one `AuthAttempt` value stored under the provider's name.

## Lifecycle

1. Login creates a pending attempt (state token + marshaled provider session)
2. Callback exchanges the code once and marks the attempt `authorized`
3. A repeated Callback may read the identity from the stored token, but an
   authorized attempt never triggers a second exchange
4. Pending attempts expire after AUTH_ATTEMPT_TTL_SECONDS
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone

from authgate.errors import SessionDecodeError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuthAttempt:
    """One authorization attempt, as persisted between requests."""

    state: str
    provider_session: str
    created_at: datetime = field(default_factory=_utcnow)
    authorized: bool = False

    def is_expired(self, ttl_seconds: int, now: datetime | None = None) -> bool:
        """Check if a pending attempt outlived its TTL.

        Authorized attempts do not expire here; their token carries its own expiry.
        """
        if self.authorized:
            return False
        now = now or _utcnow()
        return now - self.created_at > timedelta(seconds=ttl_seconds)

    def to_json(self) -> str:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return json.dumps(data, separators=(",", ":"))

    @classmethod
    def from_json(cls, data: str) -> AuthAttempt:
        """Parse a stored attempt.

        Raises:
            SessionDecodeError: If the stored value is not an attempt
        """
        try:
            raw = json.loads(data)
            return cls(
                state=str(raw["state"]),
                provider_session=str(raw["provider_session"]),
                created_at=datetime.fromisoformat(raw["created_at"]),
                authorized=bool(raw.get("authorized", False)),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise SessionDecodeError("stored auth attempt is malformed") from e
