"""
ASGI adapter - Bridges the ASGI protocol to the Waypoint dispatcher.

The application is fully built before it is handed to the server; the
lifespan protocol only closes services on shutdown.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List

from .context import AppContext
from .request import Request
from .routing.router import Dispatcher
from .routing.resolver import CanonicalRoute


class Application:
    """ASGI application serving a bootstrapped dispatcher."""

    def __init__(self, dispatcher: Dispatcher, ctx: AppContext):
        self.dispatcher = dispatcher
        self.ctx = ctx
        self.logger = logging.getLogger("waypoint.asgi")

    @property
    def routes(self) -> List[CanonicalRoute]:
        return self.dispatcher.routes

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        request = Request(scope, receive)
        response = await self.dispatcher(request)
        await response.send_asgi(send, head=request.method == "HEAD")

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.close_services()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    async def close_services(self) -> None:
        """Close services exposing ``aclose()`` or ``close()``, in reverse init order."""
        for name in reversed(list(self.ctx.services)):
            service: Any = self.ctx.services[name]
            closer = getattr(service, "aclose", None) or getattr(service, "close", None)
            if not callable(closer):
                continue
            result = closer()
            if inspect.isawaitable(result):
                await result
            self.logger.debug("Closed service %s", name)
