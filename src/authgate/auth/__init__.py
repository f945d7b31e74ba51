"""Authentication module.

Implements the OAuth2 authorization-code flow that guards the static site.

## OAuth Flow

1. Anonymous request for a protected path is redirected to /_p/login
2. Login stores a pending attempt in the session and redirects to the provider
3. The provider redirects back to /_p/callback with a code and the state token
4. Callback checks the state, exchanges the code and stores the user's email
5. The user is redirected to BASE_URL and the static site is served

## Security

- The CSRF state token is 64 random bytes unless the caller supplies one
- An attempt is exchanged at most once
- Sessions use signed, encrypted cookies
"""

from authgate.auth.attempt import AuthAttempt
from authgate.auth.dependencies import (
    get_auth_flow,
    get_current_email,
    require_email,
)
from authgate.auth.flow import IDENTITY_KEY, AuthFlow, generate_state

__all__ = [
    "AuthAttempt",
    "AuthFlow",
    "IDENTITY_KEY",
    "generate_state",
    "get_auth_flow",
    "get_current_email",
    "require_email",
]
