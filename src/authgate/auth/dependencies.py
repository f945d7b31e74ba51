"""FastAPI dependencies for authentication.

These dependencies give route handlers access to the auth flow and the
current identity.

## Usage

```python
from fastapi import Depends
from authgate.auth import require_email

@app.get("/api/profile")
async def get_profile(email: str = Depends(require_email)):
    return {"email": email}
```
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from authgate.auth.flow import AuthFlow


def get_auth_flow(request: Request) -> AuthFlow:
    """The controller built by the app factory."""
    return request.app.state.auth_flow


def get_current_email(
    request: Request,
    flow: AuthFlow = Depends(get_auth_flow),
) -> str | None:
    """Email of the logged-in user, or None."""
    return flow.current_email(request)


def require_email(email: str | None = Depends(get_current_email)) -> str:
    """Email of the logged-in user.

    Raises 401 if not authenticated.
    """
    if email is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return email
