"""
Capability Registry - Named services, middlewares and controllers.

Registration is explicit (``register_service``, ``register_middleware``,
``register_controller``); ``waypoint.discovery`` is one producer of those
calls, tests and embedding applications are others.

Services declare their siblings through ``depends_on`` and are initialised
one at a time in dependency order::

    registry = CapabilityRegistry()
    registry.register_service("Database", db_provide)
    registry.register_service("UserService", user_provide, depends_on=["Database"])
    services = await registry.initialize_services(config)
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from .context import ServiceContext, ServiceMap
from .faults import (
    DependencyCycleFault,
    DuplicateCapabilityFault,
    InvalidCapabilityFault,
    MissingMiddlewareFault,
    MissingServiceFault,
)

logger = logging.getLogger("waypoint.registry")

ServiceFactory = Callable[[ServiceContext], Awaitable[Any]]


@dataclass(frozen=True)
class ServiceSpec:
    """A registered service factory and the siblings it needs."""
    name: str
    factory: ServiceFactory
    depends_on: Tuple[str, ...] = field(default_factory=tuple)


class CapabilityRegistry:
    """
    Registry of named capabilities.

    Names are unique per kind. Registering a name twice is a configuration
    defect, never a silent override.
    """

    def __init__(self) -> None:
        self._services: Dict[str, ServiceSpec] = {}
        self._middlewares: Dict[str, Callable[..., Any]] = {}
        self._controllers: Dict[str, Any] = {}

    # ========================================================================
    # Registration
    # ========================================================================

    def register_service(
        self,
        name: str,
        factory: ServiceFactory,
        depends_on: Sequence[str] = (),
    ) -> None:
        if name in self._services:
            raise DuplicateCapabilityFault("service", name)
        if not callable(factory):
            raise InvalidCapabilityFault("service", name, "factory is not callable")
        if isinstance(depends_on, str):
            depends_on = [depends_on]
        self._services[name] = ServiceSpec(name, factory, tuple(depends_on))
        logger.debug("Registered service %s (depends on %s)", name, list(depends_on) or "nothing")

    def register_middleware(self, name: str, middleware: Callable[..., Any]) -> None:
        if name in self._middlewares:
            raise DuplicateCapabilityFault("middleware", name)
        if not callable(middleware):
            raise InvalidCapabilityFault("middleware", name, "middleware is not callable")
        self._middlewares[name] = middleware
        logger.debug("Registered middleware %s", name)

    def register_controller(self, controller: Any) -> None:
        if controller.name in self._controllers:
            raise DuplicateCapabilityFault("controller", controller.name)
        self._controllers[controller.name] = controller
        logger.debug("Registered controller %s", controller.name)

    # ========================================================================
    # Lookup
    # ========================================================================

    @property
    def service_names(self) -> List[str]:
        return list(self._services)

    @property
    def middleware_names(self) -> List[str]:
        return list(self._middlewares)

    @property
    def controllers(self) -> List[Any]:
        return list(self._controllers.values())

    def has_middleware(self, name: str) -> bool:
        return name in self._middlewares

    def get_middleware(self, name: str) -> Callable[..., Any]:
        return self._middlewares[name]

    def middleware(
        self,
        name: str,
        controller: str,
        route_key: Optional[str] = None,
    ) -> Callable[..., Any]:
        """Look up a middleware referenced by a controller (or one of its routes)."""
        try:
            return self._middlewares[name]
        except KeyError:
            raise MissingMiddlewareFault(name, controller, route_key) from None

    # ========================================================================
    # Service initialisation
    # ========================================================================

    def initialization_order(self) -> List[str]:
        """
        Dependency-first order of the registered services.

        Depth-first over ``depends_on`` edges, visiting roots and edges in
        registration/declaration order, so the result is deterministic.

        Raises:
            MissingServiceFault: A dependency names an unregistered service
            DependencyCycleFault: Dependencies form a cycle
        """
        order: List[str] = []
        done = set()
        path: List[str] = []

        def visit(name: str, requested_by: Optional[str]) -> None:
            if name in done:
                return
            if name in path:
                raise DependencyCycleFault(path[path.index(name):] + [name])
            spec = self._services.get(name)
            if spec is None:
                raise MissingServiceFault(name, requested_by=requested_by)

            path.append(name)
            for dep in spec.depends_on:
                visit(dep, name)
            path.pop()

            done.add(name)
            order.append(name)

        for name in self._services:
            visit(name, None)
        return order

    async def initialize_services(self, config: Any) -> ServiceMap:
        """
        Invoke every service factory exactly once, awaiting each in turn.

        A factory receives ``ServiceContext(config, services, name)`` where
        ``services`` holds only the siblings initialised before it.
        """
        instances: Dict[str, Any] = {}
        for name in self.initialization_order():
            spec = self._services[name]
            ctx = ServiceContext(config=config, services=ServiceMap(instances, owner=name), name=name)
            result = spec.factory(ctx)
            if inspect.isawaitable(result):
                result = await result
            instances[name] = result
            logger.debug("Initialized service %s", name)
        return ServiceMap(instances)

    def __repr__(self) -> str:
        return (
            f"CapabilityRegistry(services={self.service_names}, "
            f"middlewares={self.middleware_names}, controllers={list(self._controllers)})"
        )
