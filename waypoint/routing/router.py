"""
Dispatch surface.

``Dispatcher`` is what the ASGI application calls for every request::

    ExceptionMiddleware (guards the process-wide middlewares themselves)
      -> process-wide middlewares (config/http.py), in order
        -> ExceptionMiddleware (faults -> envelopes)
        -> framework routes (API docs)
        -> mounts, in registration order:
             /User: global middlewares -> first matching route
                    (local middlewares -> handler)
             no match -> next mount
        -> 404 envelope
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from ..faults import NotFoundFault
from ..middleware import BoundMiddleware, Endpoint, ExceptionMiddleware, bind_context, compose
from ..request import Request
from ..response import Response
from .patterns import PathPattern, under_prefix
from .resolver import CanonicalRoute

logger = logging.getLogger("waypoint.routing")

Fallthrough = Callable[[Request], Awaitable[Response]]


def to_response(result: Any) -> Response:
    """Normalise a handler's return value."""
    if isinstance(result, Response):
        return result
    if result is None:
        return Response(b"", status=204)
    if isinstance(result, (dict, list)):
        return Response.json(result)
    if isinstance(result, str):
        return Response.text(result)
    if isinstance(result, bytes):
        return Response(result)
    raise TypeError(f"Handler returned unsupported type {type(result).__name__}")


def method_matches(route_method: str, request_method: str) -> bool:
    request_method = request_method.lower()
    if route_method == "all" or route_method == request_method:
        return True
    return route_method == "get" and request_method == "head"


def handler_endpoint(handler: Callable[..., Any], ctx: Any) -> Endpoint:
    """Wrap ``handler(request, ctx)`` as an endpoint returning a Response."""

    async def endpoint(request: Request) -> Response:
        result = handler(request, ctx)
        if inspect.isawaitable(result):
            result = await result
        return to_response(result)

    return endpoint


class MountedRoute:
    """A canonical route with its compiled pattern and composed chain."""

    __slots__ = ("route", "pattern", "endpoint")

    def __init__(self, route: CanonicalRoute, ctx: Any):
        self.route = route
        self.pattern = PathPattern.compile(route.path)
        self.endpoint = compose(route.middlewares, handler_endpoint(route.handler, ctx))

    def match(self, method: str, path: str) -> Optional[dict]:
        if not method_matches(self.route.method, method):
            return None
        return self.pattern.match(path)


class ControllerRouter:
    """
    Per-controller route table mounted at ``/<BaseRoute>``.

    Global middlewares run for every request under the prefix, before route
    matching; an unmatched request leaves through ``fallthrough``.
    """

    def __init__(
        self,
        name: str,
        prefix: str,
        routes: Sequence[CanonicalRoute],
        global_middlewares: Sequence[BoundMiddleware],
        ctx: Any,
    ):
        self.name = name
        self.prefix = prefix
        self.routes: Tuple[CanonicalRoute, ...] = tuple(routes)
        self.global_middlewares: Tuple[BoundMiddleware, ...] = tuple(global_middlewares)
        self._mounted = [MountedRoute(route, ctx) for route in self.routes]

    def match(self, method: str, path: str) -> Optional[Tuple[MountedRoute, dict]]:
        """First route, in declaration order, matching ``method`` and ``path``."""
        for mounted in self._mounted:
            params = mounted.match(method, path)
            if params is not None:
                return mounted, params
        return None

    async def handle(self, request: Request, fallthrough: Fallthrough) -> Response:
        async def route(request: Request) -> Response:
            found = self.match(request.method, request.path)
            if found is None:
                return await fallthrough(request)
            mounted, params = found
            request.params = params
            return await mounted.endpoint(request)

        return await compose(self.global_middlewares, route)(request)

    def __repr__(self) -> str:
        return f"<ControllerRouter {self.prefix} routes={len(self.routes)}>"


class Dispatcher:
    """Top-level request dispatcher."""

    def __init__(self, ctx: Any, *, debug: bool = False):
        self.ctx = ctx
        self.mounts: List[ControllerRouter] = []
        self.framework_routes: List[Tuple[str, PathPattern, Endpoint]] = []
        self._exceptions = ExceptionMiddleware(debug=debug)
        self._middlewares: List[BoundMiddleware] = [bind_context(self._exceptions, ctx, "exceptions")]
        self._chain: Optional[Endpoint] = None

    def use(self, middleware: Callable[..., Any], name: Optional[str] = None) -> None:
        """Add a process-wide middleware ``mw(request, next, ctx)``."""
        self._middlewares.append(bind_context(middleware, self.ctx, name))
        self._chain = None

    def mount(self, router: ControllerRouter) -> None:
        self.mounts.append(router)

    def add_route(self, method: str, path: str, endpoint: Endpoint) -> None:
        """Register a framework route (no version prefix, no controller)."""
        self.framework_routes.append((method.lower(), PathPattern.compile(path), endpoint))

    @property
    def routes(self) -> List[CanonicalRoute]:
        return [route for router in self.mounts for route in router.routes]

    async def __call__(self, request: Request) -> Response:
        if self._chain is None:
            inner = bind_context(self._exceptions, self.ctx, "envelopes")
            self._chain = compose([*self._middlewares, inner], self._route)
        return await self._chain(request)

    async def _route(self, request: Request) -> Response:
        for method, pattern, endpoint in self.framework_routes:
            if not method_matches(method, request.method):
                continue
            params = pattern.match(request.path)
            if params is not None:
                request.params = params
                return await endpoint(request)
        return await self._dispatch(request, 0)

    async def _dispatch(self, request: Request, start: int) -> Response:
        for index in range(start, len(self.mounts)):
            router = self.mounts[index]
            if under_prefix(request.path, router.prefix):
                return await router.handle(
                    request, lambda req, nxt=index + 1: self._dispatch(req, nxt),
                )
        raise NotFoundFault(f"Cannot {request.method} {request.path}")
