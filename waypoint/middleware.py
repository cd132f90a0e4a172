"""
Middleware system - Named, context-injected request pipeline steps.

A middleware is ``async def mw(request, next, ctx) -> Response`` where
``next`` is ``async def next(request) -> Response`` and ``ctx`` is the
``AppContext`` bundle. ``bind_context`` appends the bundle as the trailing
argument so chains only ever call ``mw(request, next)``.
"""

from __future__ import annotations

import gzip
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .faults import RequestFault
from .request import Request
from .response import Response

Endpoint = Callable[[Request], Awaitable[Response]]
Middleware = Callable[..., Awaitable[Response]]


class BoundMiddleware:
    """
    Middleware with its dependency bundle appended as the final argument.

    ``bound(request, next)`` calls ``func(request, next, ctx)``; the leading
    positional arguments are passed through untouched.
    """

    __slots__ = ("func", "ctx", "name")

    def __init__(self, func: Middleware, ctx: Any, name: Optional[str] = None):
        self.func = func
        self.ctx = ctx
        self.name = name or getattr(func, "__name__", type(func).__name__)

    def __call__(self, *args: Any) -> Awaitable[Response]:
        return self.func(*args, self.ctx)

    def __repr__(self) -> str:
        return f"<BoundMiddleware {self.name}>"


def bind_context(func: Middleware, ctx: Any, name: Optional[str] = None) -> BoundMiddleware:
    """Inject ``ctx`` as the trailing argument of ``func``."""
    return BoundMiddleware(func, ctx, name)


def compose(middlewares: Sequence[BoundMiddleware], endpoint: Endpoint) -> Endpoint:
    """Build a chain that runs ``middlewares`` in order, then ``endpoint``."""
    handler = endpoint
    # Wrap in reverse order so the first middleware is outermost
    for middleware in reversed(middlewares):
        handler = _link(middleware, handler)
    return handler


def _link(middleware: BoundMiddleware, next_handler: Endpoint) -> Endpoint:
    async def linked(request: Request) -> Response:
        return await middleware(request, next_handler)

    return linked


def add_vary(response: Response, value: str) -> None:
    """Append ``value`` to the response's Vary header unless already listed."""
    current = response.headers.get("vary")
    if not current:
        response.headers["vary"] = value
        return
    listed = [item.strip().lower() for item in current.split(",")]
    if value.lower() not in listed and "*" not in listed:
        response.headers["vary"] = f"{current}, {value}"


# Default middleware implementations

class ExceptionMiddleware:
    """
    Converts request-time failures into JSON error envelopes.

    RequestFault -> its own status and ``{success: false, error, details?}``.
    Anything else -> 500 ``Internal server error``; the traceback is logged and
    the process keeps serving.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("waypoint.exceptions")

    async def __call__(self, request: Request, next: Endpoint, ctx: Any) -> Response:
        try:
            return await next(request)

        except RequestFault as e:
            self.logger.warning("%s %s -> %d %s", request.method, request.path, e.status, e.message)
            return Response.json(e.to_envelope(), status=e.status)

        except Exception as e:
            self.logger.error(
                "Unhandled exception on %s %s: %s", request.method, request.path, e,
                exc_info=True,
            )
            body = {"success": False, "error": "Internal server error"}
            if self.debug:
                body["details"] = [{"field": None, "message": str(e)}]
            return Response.json(body, status=500)


class LoggingMiddleware:
    """Logs request/response with timing."""

    def __init__(self, slow_ms: float = 1000.0):
        self.logger = logging.getLogger("waypoint.requests")
        self.slow_ms = slow_ms

    async def __call__(self, request: Request, next: Endpoint, ctx: Any) -> Response:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request)

        start = time.monotonic()
        response = await next(request)
        elapsed_ms = (time.monotonic() - start) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms)",
            request.method, request.path, response.status, elapsed_ms,
        )
        if elapsed_ms > self.slow_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms",
                request.method, request.path, elapsed_ms,
            )
        return response


class BodyLimitMiddleware:
    """Caps the size of request bodies (413 beyond ``limit`` bytes)."""

    def __init__(self, limit: int = 50 * 1024 * 1024):
        self.limit = limit

    async def __call__(self, request: Request, next: Endpoint, ctx: Any) -> Response:
        declared = request.header("content-length")
        if declared and declared.isdigit() and int(declared) > self.limit:
            return Response.error(f"Request body exceeds {self.limit} bytes", status=413)
        request.body_limit = self.limit
        return await next(request)


class CORSMiddleware:
    """
    Handles CORS headers.

    With ``permissive=True`` origins outside ``allow_origins`` are still
    allowed but logged, which is how a whitelist is rolled out without
    breaking existing browser clients.
    """

    def __init__(
        self,
        allow_origins: Optional[List[str]] = None,
        allow_methods: Optional[List[str]] = None,
        allow_headers: Optional[List[str]] = None,
        allow_credentials: bool = False,
        max_age: int = 3600,
        permissive: bool = False,
    ):
        self.allow_origins = allow_origins or ["*"]
        self.allow_methods = allow_methods or ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
        self.allow_headers = allow_headers or ["*"]
        self.allow_credentials = allow_credentials
        self.max_age = max_age
        self.permissive = permissive
        self.logger = logging.getLogger("waypoint.cors")

    def _allowed_origin(self, origin: Optional[str]) -> Optional[str]:
        if not origin or origin == "null":
            return None
        if "*" in self.allow_origins or origin in self.allow_origins:
            return origin
        if origin.startswith("chrome-extension"):
            return origin
        if self.permissive:
            self.logger.warning("[Not allowed by CORS] but allowed temporarily %s", origin)
            return origin
        return None

    def _apply(self, response: Response, origin: Optional[str]) -> Response:
        allowed = self._allowed_origin(origin)
        if allowed:
            response.headers["access-control-allow-origin"] = allowed
            add_vary(response, "Origin")
        elif "*" in self.allow_origins:
            response.headers["access-control-allow-origin"] = "*"
        if self.allow_credentials:
            response.headers["access-control-allow-credentials"] = "true"
        return response

    async def __call__(self, request: Request, next: Endpoint, ctx: Any) -> Response:
        origin = request.header("origin")

        if request.method == "OPTIONS" and request.header("access-control-request-method"):
            response = Response(b"", status=204, headers={
                "access-control-allow-methods": ", ".join(self.allow_methods),
                "access-control-allow-headers": ", ".join(self.allow_headers),
                "access-control-max-age": str(self.max_age),
            })
            return self._apply(response, origin)

        response = await next(request)
        return self._apply(response, origin)


class CompressionMiddleware:
    """Compresses response bodies with gzip."""

    def __init__(self, minimum_size: int = 1024):
        self.minimum_size = minimum_size

    async def __call__(self, request: Request, next: Endpoint, ctx: Any) -> Response:
        response = await next(request)

        if "gzip" not in (request.header("accept-encoding") or "").lower():
            return response
        if "content-encoding" in response.headers:
            return response
        if len(response.body) < self.minimum_size:
            return response

        response.body = gzip.compress(response.body)
        response.headers["content-encoding"] = "gzip"
        add_vary(response, "Accept-Encoding")
        return response


__all__ = [
    "Endpoint",
    "Middleware",
    "BoundMiddleware",
    "bind_context",
    "compose",
    "add_vary",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "BodyLimitMiddleware",
    "CORSMiddleware",
    "CompressionMiddleware",
]
