"""Access-gated static file middleware.

Sits in front of the application's routes. For each request it:

1. Redirects unauthenticated requests to the login page, unless the path
   is in the auth namespace (/_p/), which must stay reachable
2. Resolves the path under the content root
3. Serves the file, or a directory's index file
4. Falls through to the wrapped app when nothing exists on disk; with
   HTML5 mode on, a 404 from the wrapped app is replaced by the index file
   (except under the auth namespace)

Conditional GET (If-None-Match / If-Modified-Since) and range requests are
handled by Starlette's `StaticFiles` and `FileResponse`.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.requests import HTTPConnection
from starlette.responses import FileResponse, PlainTextResponse, RedirectResponse
from starlette.staticfiles import NotModifiedResponse, StaticFiles
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authgate.config import AUTH_NAMESPACE
from authgate.errors import MethodNotAllowed, error_response
from authgate.static.files import (
    Lookup,
    LookupKind,
    calculate_etag,
    clean_path,
    lookup,
    resolve_path,
)

logger = logging.getLogger(__name__)

INDEX_HTML = "index.html"


@dataclass(frozen=True)
class StaticConfig:
    """Static serving options.

    Attributes:
        root: Directory the content is served from
        index: File served for a directory
        html5: Forward unmatched paths to the index file so a single-page
            application can do its own routing
    """

    root: str = "."
    index: str = INDEX_HTML
    html5: bool = False


class StaticMiddleware:
    """Serve static content to authenticated users."""

    def __init__(
        self,
        app: ASGIApp,
        config: StaticConfig,
        is_authenticated: Callable[[HTTPConnection], bool],
        login_url: str,
        public_prefixes: tuple[str, ...] = (AUTH_NAMESPACE,),
    ):
        self.app = app
        self.config = config
        self.is_authenticated = is_authenticated
        self.login_url = login_url
        self.public_prefixes = public_prefixes
        self._files = StaticFiles(directory=config.root, check_dir=False)

    def is_public(self, path: str) -> bool:
        """Paths that never require authentication."""
        return path.startswith(self.public_prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # The gate and the lookup must see the same path
        path = clean_path(_request_path(scope))

        conn = HTTPConnection(scope)
        if not self.is_authenticated(conn) and not self.is_public(path):
            response = RedirectResponse(url=self.login_url, status_code=307)
            await response(scope, receive, send)
            return

        name = resolve_path(self.config.root, path)
        found = await run_in_threadpool(lookup, name)

        if found.kind is LookupKind.NOT_FOUND:
            await self._fall_through(path, scope, receive, send)
            return

        if found.kind is LookupKind.DIRECTORY:
            found = await run_in_threadpool(lookup, os.path.join(found.path, self.config.index))
            if found.kind is not LookupKind.FILE:
                await self.app(scope, receive, send)
                return

        await self._serve(found, scope, receive, send)

    async def _fall_through(
        self, path: str, scope: Scope, receive: Receive, send: Send
    ) -> None:
        if not self.config.html5 or self.is_public(path):
            await self.app(scope, receive, send)
            return

        not_found = False

        async def send_wrapper(message: Message) -> None:
            nonlocal not_found
            if message["type"] == "http.response.start" and message["status"] == 404:
                not_found = True
            if not not_found:
                await send(message)

        await self.app(scope, receive, send_wrapper)
        if not not_found:
            return

        index = await run_in_threadpool(
            lookup, os.path.join(self.config.root, self.config.index)
        )
        if index.kind is not LookupKind.FILE:
            logger.warning(f"HTML5 mode is on but {index.path} is not a file")
            response = PlainTextResponse("Not Found", status_code=404)
            await response(scope, receive, send)
            return

        await self._serve(index, scope, receive, send)

    async def _serve(self, found: Lookup, scope: Scope, receive: Receive, send: Send) -> None:
        method = scope["method"]
        if method not in ("GET", "HEAD"):
            await error_response(MethodNotAllowed(method))(scope, receive, send)
            return

        response = FileResponse(found.path, stat_result=found.stat_result)

        etag = calculate_etag(found.stat_result)
        if etag:
            response.headers["etag"] = etag
        elif "etag" in response.headers:
            del response.headers["etag"]

        if self._files.is_not_modified(response.headers, Headers(scope=scope)):
            response = NotModifiedResponse(response.headers)

        await response(scope, receive, send)


def _request_path(scope: Scope) -> str:
    # raw_path is still percent-encoded; clean_path decodes it once
    raw = scope.get("raw_path")
    if raw:
        return raw.split(b"?", 1)[0].decode("latin-1")
    return scope["path"]
