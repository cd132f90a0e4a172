"""
Route Descriptor Resolver - route key + descriptor -> canonical route.

For every entry of a controller's route map the resolver decides, in
order:

1. where the HTTP method comes from: the key (``"POST /"``) or the
   descriptor's ``method`` field (``"/" + {"method": "post"}``), never both
   and never neither;
2. the sub-path (the key from its first ``/``, or the whole key);
3. whether the route is disabled (logged and skipped, not an error);
4. the API version (default, or a member of the allowed set);
5. the local middlewares, looked up by name and bound to the app context.

Every defect is a ``RoutingFault``/``RegistryFault``; callers treat them as
fatal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from ..config import ApiVersionConfig
from ..controller import ControllerModule, Route
from ..faults import (
    DualMethodFault,
    InvalidApiVersionFault,
    InvalidMethodFault,
    InvalidRouteFault,
)
from ..log import SEPARATOR
from ..middleware import BoundMiddleware, bind_context
from .methods import get_valid_http_method, normalize_method_field

logger = logging.getLogger("waypoint.routing")

_DESCRIPTOR_KEYS = frozenset(f.name for f in fields(Route))


@dataclass(frozen=True)
class RouteDescriptor:
    """Descriptor normalised from a mapping or a ``Route``."""

    handler: Callable[..., Any]
    method: Any = None
    local_middlewares: Tuple[str, ...] = ()
    enabled: bool = True
    version: Any = None

    @classmethod
    def from_value(cls, controller: str, route_key: str, value: Any) -> "RouteDescriptor":
        if isinstance(value, Route):
            data = {f.name: getattr(value, f.name) for f in fields(Route)}
        elif isinstance(value, Mapping):
            unknown = sorted(set(value) - _DESCRIPTOR_KEYS)
            if unknown:
                raise InvalidRouteFault(controller, route_key, f"unknown descriptor keys {unknown}")
            data = dict(value)
        else:
            raise InvalidRouteFault(
                controller, route_key, f"descriptor must be a mapping or Route, got {type(value).__name__}",
            )

        handler = data.get("handler")
        if not callable(handler):
            raise InvalidRouteFault(controller, route_key, "'handler' must be callable")

        middlewares = data.get("local_middlewares") or ()
        if isinstance(middlewares, str) or not all(isinstance(m, str) for m in middlewares):
            raise InvalidRouteFault(controller, route_key, "'local_middlewares' must be a list of names")

        return cls(
            handler=handler,
            method=data.get("method"),
            local_middlewares=tuple(middlewares),
            enabled=data.get("enabled", True) is not False,
            version=data.get("version"),
        )


@dataclass(frozen=True)
class CanonicalRoute:
    """
    A resolved route, immutable once built.

    ``path`` is ``"/" + base_route + "/" + version + sub_path``.
    """

    method: str
    path: str
    middlewares: Tuple[BoundMiddleware, ...]
    handler: Callable[..., Any]
    controller: str
    route_key: str
    version: str
    sub_path: str

    @property
    def display_method(self) -> str:
        return self.method.upper()

    def log_added(self) -> None:
        logger.info("Added | \t %s  %s", self.display_method, self.path)
        logger.info(SEPARATOR)


@dataclass(frozen=True)
class DisabledRoute:
    """A route map entry switched off with ``enabled: False``."""

    method: str
    controller: str
    route_key: str
    sub_path: str

    def log_disabled(self) -> None:
        logger.warning(
            'Disabled endpoint HTTP method: "%s" at controllers/%s at route: "%s"',
            self.method.upper(), self.controller, self.sub_path,
        )
        logger.info(SEPARATOR)


ResolvedEntry = Union[CanonicalRoute, DisabledRoute]


class RouteResolver:
    """Resolves route map entries against versions and registered middlewares."""

    def __init__(self, versions: ApiVersionConfig, registry: Any, ctx: Any):
        self.versions = versions
        self.registry = registry
        self.ctx = ctx

    def split_key(self, controller: str, route_key: str, descriptor: RouteDescriptor) -> Tuple[str, str]:
        """Return ``(method, sub_path)`` for a route entry."""
        key_method = get_valid_http_method(route_key)
        field_method = normalize_method_field(descriptor.method)

        if key_method and field_method:
            raise DualMethodFault(controller, route_key)
        if not key_method and not field_method:
            raise InvalidMethodFault(controller, route_key, descriptor.method)

        if key_method:
            slash = route_key.find("/")
            if slash < 0:
                raise InvalidRouteFault(controller, route_key, "route key has no path after the HTTP method")
            return key_method, route_key[slash:].rstrip()

        sub_path = route_key.strip()
        if not sub_path.startswith("/"):
            raise InvalidRouteFault(controller, route_key, "path must start with '/'")
        return field_method, sub_path

    def resolve(
        self,
        controller: ControllerModule,
        route_key: str,
        value: Any,
    ) -> Optional[CanonicalRoute]:
        """Canonical route for one entry, or ``None`` (logged) when it is disabled."""
        entry = self.resolve_entry(controller, route_key, value)
        if isinstance(entry, DisabledRoute):
            entry.log_disabled()
            return None
        return entry

    def resolve_entry(
        self,
        controller: ControllerModule,
        route_key: str,
        value: Any,
    ) -> ResolvedEntry:
        """Like ``resolve`` but returns disabled entries instead of logging them."""
        name = controller.name
        if not isinstance(route_key, str):
            raise InvalidRouteFault(name, str(route_key), "route key must be a string")

        descriptor = RouteDescriptor.from_value(name, route_key, value)
        method, sub_path = self.split_key(name, route_key, descriptor)

        if not descriptor.enabled:
            return DisabledRoute(method, name, route_key, sub_path)

        if descriptor.version is None:
            version = self.versions.default
        elif self.versions.is_allowed(descriptor.version):
            version = descriptor.version
        else:
            raise InvalidApiVersionFault(name, route_key, descriptor.version)

        middlewares = tuple(
            bind_context(self.registry.middleware(mw, name, route_key), self.ctx, mw)
            for mw in descriptor.local_middlewares
        )

        return CanonicalRoute(
            method=method,
            path=f"/{controller.base_route}/{version}{sub_path}",
            middlewares=middlewares,
            handler=descriptor.handler,
            controller=name,
            route_key=route_key,
            version=version,
            sub_path=sub_path,
        )
