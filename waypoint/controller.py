"""
Controller modules and route descriptors.

A controller module exposes::

    global_middlewares = ["auth"]            # optional

    def routes(ctx):
        return {
            "GET /": {"handler": list_users},
            "/:id": {"method": "get", "handler": get_user, "local_middlewares": ["userValidate"]},
            "POST /": Route(handler=create_user, version="v2.0"),
        }

Handlers are ``async def handler(request, ctx) -> Response``; a returned
dict or list is sent as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .faults import InvalidControllerFault


@dataclass(frozen=True)
class Route:
    """Typed route descriptor; equivalent to the plain mapping form."""
    handler: Callable[..., Any]
    method: Optional[str] = None
    local_middlewares: Tuple[str, ...] = ()
    enabled: bool = True
    version: Optional[str] = None


@dataclass
class ControllerModule:
    """
    A controller as seen by the router assembler.

    Attributes:
        name: Declared name (file stem for discovered controllers)
        routes: ``routes(ctx) -> Mapping[route_key, descriptor]``
        global_middlewares: Middleware names applied to every route
        source: Where it was declared, for diagnostics
    """

    name: str
    routes: Callable[[Any], Mapping[str, Any]]
    global_middlewares: List[str] = field(default_factory=list)
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidControllerFault("<anonymous>", "controller name is empty")
        if not callable(self.routes):
            raise InvalidControllerFault(self.name, "'routes' must be a callable returning a route map")
        if isinstance(self.global_middlewares, str):
            self.global_middlewares = [self.global_middlewares]
        self.global_middlewares = list(self.global_middlewares or [])

    @property
    def base_route(self) -> str:
        """Mount segment: the name with its first character upper-cased."""
        return self.name[:1].upper() + self.name[1:]

    def route_map(self, ctx: Any) -> Dict[str, Any]:
        table = self.routes(ctx)
        if not isinstance(table, Mapping):
            raise InvalidControllerFault(
                self.name, f"routes(ctx) returned {type(table).__name__}, expected a mapping",
            )
        return dict(table)

    @classmethod
    def from_module(cls, name: str, module: ModuleType) -> "ControllerModule":
        routes = getattr(module, "routes", None)
        if routes is None:
            raise InvalidControllerFault(name, "module must define 'routes(ctx)'")
        return cls(
            name=name,
            routes=routes,
            global_middlewares=getattr(module, "global_middlewares", []),
            source=getattr(module, "__file__", None),
        )
