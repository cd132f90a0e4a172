"""
Context objects threaded through services, controllers and middlewares.

``AppContext`` is the dependency bundle (services + config) built once during
bootstrap. Every handler receives it as ``handler(request, ctx)`` and every
middleware as its final argument, ``middleware(request, next, ctx)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Mapping, Optional

from .faults import MissingServiceFault


class ServiceMap(Mapping[str, Any]):
    """
    Read-only name -> service instance mapping.

    Supports ``services["UserService"]`` and ``services.UserService``.
    Unknown names raise ``MissingServiceFault`` instead of ``KeyError`` so a
    typo in a controller surfaces as a configuration defect.
    """

    __slots__ = ("_services", "_owner")

    def __init__(self, services: Optional[Dict[str, Any]] = None, owner: Optional[str] = None):
        object.__setattr__(self, "_services", dict(services or {}))
        object.__setattr__(self, "_owner", owner)

    def __getitem__(self, name: str) -> Any:
        try:
            return self._services[name]
        except KeyError:
            raise MissingServiceFault(name, requested_by=self._owner) from None

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ServiceMap is read-only")

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __repr__(self) -> str:
        return f"ServiceMap({list(self._services)})"


@dataclass(frozen=True)
class ServiceContext:
    """Argument handed to a service factory."""
    config: Any
    services: ServiceMap
    name: str = ""


@dataclass(frozen=True)
class AppContext:
    """Immutable dependency bundle shared by controllers and middlewares."""
    services: ServiceMap
    config: Any
