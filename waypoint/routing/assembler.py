"""
Router Assembler - controller module -> mounted ControllerRouter.

All routes of a controller are resolved, and its global middlewares looked
up, before anything is mounted: a controller with a single bad route
contributes nothing to the dispatcher. The ``Added`` and ``Disabled`` lines
are written once the controller is mounted, in declaration order.
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

from ..config import ApiVersionConfig
from ..controller import ControllerModule
from ..middleware import bind_context
from .resolver import CanonicalRoute, DisabledRoute, ResolvedEntry, RouteResolver
from .router import ControllerRouter, Dispatcher


class RouterAssembler:
    """Builds and mounts per-controller routers."""

    def __init__(
        self,
        registry: Any,
        ctx: Any,
        versions: ApiVersionConfig,
        dispatcher: Optional[Dispatcher] = None,
    ):
        self.registry = registry
        self.ctx = ctx
        self.versions = versions
        self.dispatcher = dispatcher
        self.resolver = RouteResolver(versions, registry, ctx)

    def resolve_entries(self, controller: ControllerModule) -> List[ResolvedEntry]:
        """Every route map entry resolved, in declaration order."""
        return [
            self.resolver.resolve_entry(controller, route_key, descriptor)
            for route_key, descriptor in controller.route_map(self.ctx).items()
        ]

    def resolve_routes(self, controller: ControllerModule) -> List[CanonicalRoute]:
        """Canonical routes of ``controller`` in declaration order (disabled ones omitted)."""
        return [entry for entry in self.resolve_entries(controller) if isinstance(entry, CanonicalRoute)]

    def assemble(self, controller: ControllerModule) -> ControllerRouter:
        return self._assemble(controller)[0]

    def _assemble(self, controller: ControllerModule) -> Tuple[ControllerRouter, List[ResolvedEntry]]:
        entries = self.resolve_entries(controller)
        routes = [entry for entry in entries if isinstance(entry, CanonicalRoute)]
        global_middlewares = [
            bind_context(self.registry.middleware(name, controller.name), self.ctx, name)
            for name in controller.global_middlewares
        ]
        router = ControllerRouter(
            name=controller.name,
            prefix=f"/{controller.base_route}",
            routes=routes,
            global_middlewares=global_middlewares,
            ctx=self.ctx,
        )
        return router, entries

    def mount(self, controller: ControllerModule) -> ControllerRouter:
        """Assemble ``controller`` and attach it to the dispatcher."""
        if self.dispatcher is None:
            raise RuntimeError("RouterAssembler.mount() needs a dispatcher")
        router, entries = self._assemble(controller)
        self.dispatcher.mount(router)
        for entry in entries:
            if isinstance(entry, DisabledRoute):
                entry.log_disabled()
            else:
                entry.log_added()
        return router

    def mount_all(self, controllers: List[ControllerModule]) -> List[ControllerRouter]:
        return [self.mount(controller) for controller in controllers]
