"""CORS middleware that leaves selected paths to answer with their own headers."""

from collections.abc import Iterable

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp
from starlette.types import Receive
from starlette.types import Scope
from starlette.types import Send


class OpenPathCORSMiddleware(CORSMiddleware):
    """``CORSMiddleware`` for the configured origins, except on ``open_paths``.

    Requests to an open path (preflights included) go straight to the
    application, which is expected to set permissive CORS headers itself.
    """

    def __init__(self, app: ASGIApp, open_paths: Iterable[str] = (), **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.open_paths = frozenset(open_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"] in self.open_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
