"""ASGI middleware."""

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class RelayExemptCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that passes the download relay through untouched.

    The relay answers preflight itself and sets permissive cross-origin
    headers on every response, for any origin. Everything else is subject to
    the configured origin allowlist.
    """

    def __init__(self, app: ASGIApp, relay_path: str, **options) -> None:
        super().__init__(app, **options)
        self.relay_path = relay_path.rstrip("/")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].rstrip("/") == self.relay_path:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
