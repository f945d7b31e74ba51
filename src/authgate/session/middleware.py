"""ASGI middleware that attaches the cookie session to each request."""

from __future__ import annotations

from starlette.datastructures import MutableHeaders
from starlette.requests import HTTPConnection
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authgate.session.store import SESSION_SCOPE_KEY, SessionStore


class SessionMiddleware:
    """Load the session before the app runs and write it back on response start.

    Installed outermost so that error responses rendered by the exception
    handlers still carry whatever the handler stored before failing.
    """

    def __init__(self, app: ASGIApp, store: SessionStore):
        self.app = app
        self.store = store

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        conn = HTTPConnection(scope)
        session = self.store.load(conn.cookies.get(self.store.options.name))
        scope[SESSION_SCOPE_KEY] = session

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start" and session.modified:
                headers = MutableHeaders(scope=message)
                headers.append("Set-Cookie", self.store.cookie_header(session))
            await send(message)

        await self.app(scope, receive, send_wrapper)
